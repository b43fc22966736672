"""Tests for the JSON-lines stdio worker."""

import io
import json

from calcengine.config import EngineSettings
from calcengine.main import encode_response, serve
from calcengine.models import BollingerBands, TaskResponse


def _run(lines: list[str], settings: EngineSettings | None = None) -> list[dict]:
    stdin = io.StringIO("".join(line + "\n" for line in lines))
    stdout = io.StringIO()
    serve(stdin, stdout, settings)
    return [json.loads(line) for line in stdout.getvalue().splitlines()]


class TestServe:
    """Tests for serve()."""

    def test_answers_each_request_in_order(self) -> None:
        """Each input line is answered in arrival order."""
        responses = _run(
            [
                json.dumps({"id": "a", "type": "calculateMA", "payload": {"data": [1, 2, 3, 4, 5], "period": 3}}),
                json.dumps({"id": "x", "type": "unknownThing"}),
            ]
        )

        assert responses[0] == {"id": "a", "type": "result", "result": [None, None, 2.0, 3.0, 4.0]}
        assert responses[1]["id"] == "x"
        assert responses[1]["type"] == "error"
        assert "unknownThing" in responses[1]["error"]

    def test_aggregate_bars_serialized_as_objects(self) -> None:
        """OHLCV bars are written as JSON objects."""
        responses = _run(
            [
                json.dumps(
                    {
                        "id": "agg",
                        "type": "aggregatePriceData",
                        "payload": {
                            "prices": [
                                {"timestamp": 0, "price": 10, "volume": 1},
                                {"timestamp": 5, "price": 12, "volume": 2},
                                {"timestamp": 11, "price": 9, "volume": 1},
                            ],
                            "interval": 10,
                        },
                    }
                )
            ]
        )

        assert responses[0]["result"] == [
            {"timestamp": 0, "open": 10.0, "high": 12.0, "low": 10.0, "close": 12.0, "volume": 3.0},
            {"timestamp": 10, "open": 9.0, "high": 9.0, "low": 9.0, "close": 9.0, "volume": 1.0},
        ]

    def test_progress_lines_precede_result(self) -> None:
        """Progress lines are written before the result line."""
        settings = EngineSettings(sort_direct_threshold=5, sort_chunk_size=3)
        responses = _run(
            [json.dumps({"id": "s", "type": "sortLargeArray", "payload": {"data": [5, 4, 3, 2, 1, 0]}})],
            settings,
        )

        assert responses[-1] == {"id": "s", "type": "result", "result": [0, 1, 2, 3, 4, 5]}
        assert all(r["type"] == "progress" for r in responses[:-1])
        assert len(responses) > 1

    def test_invalid_json_line_answered_with_error(self) -> None:
        """Undecodable lines get an error with an empty id."""
        responses = _run(["{not json", json.dumps({"id": "ok", "type": "calculateMA", "payload": {"data": [1], "period": 1}})])

        assert responses[0]["id"] == ""
        assert responses[0]["type"] == "error"
        assert responses[1]["type"] == "result"

    def test_blank_lines_skipped(self) -> None:
        """Blank lines produce no output."""
        assert _run(["", "   "]) == []

    def test_returns_answer_count(self) -> None:
        """serve() returns the number of answered tasks."""
        stdin = io.StringIO('{"id": "1", "type": "nope"}\n\n{"id": "2", "type": "nope"}\n')
        assert serve(stdin, io.StringIO()) == 2


class TestEncodeResponse:
    """Tests for encode_response."""

    def test_nan_written_as_null(self) -> None:
        """Warm-up NaN values are written as null."""
        line = encode_response(TaskResponse.ok("n", [float("nan"), 1.0]))
        assert json.loads(line) == {"id": "n", "type": "result", "result": [None, 1.0]}

    def test_bands_nan_written_as_null(self) -> None:
        """NaN inside band results is written as null."""
        bands = BollingerBands(middle=[float("nan")], upper=[float("nan")], lower=[float("nan")])
        line = encode_response(TaskResponse.ok("b", bands))
        assert json.loads(line)["result"] == {"middle": [None], "upper": [None], "lower": [None]}
