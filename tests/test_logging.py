import json
import logging
import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from hookgate.logging_utils import JsonFormatter, setup_logger


class LoggingTests(unittest.TestCase):
    def test_setup_logger_writes_json_lines(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            logger = setup_logger("hookgate.test_logging", Path(temp_dir) / "logs", stream=False)
            try:
                logger.warning("hook %s denied", "guard")
                for handler in logger.handlers:
                    handler.flush()
                log_path = Path(temp_dir) / "logs" / "hookgate.log"
                payload = json.loads(log_path.read_text(encoding="utf-8").strip().splitlines()[-1])
                self.assertEqual(payload["level"], "WARNING")
                self.assertEqual(payload["logger"], "hookgate.test_logging")
                self.assertEqual(payload["message"], "hook guard denied")
                self.assertIsNotNone(datetime.fromisoformat(payload["ts"]).tzinfo)
                self.assertIs(setup_logger("hookgate.test_logging", Path(temp_dir) / "other"), logger)
            finally:
                for handler in list(logger.handlers):
                    handler.close()
                    logger.removeHandler(handler)

    def test_json_formatter_carries_hook_context(self) -> None:
        record = logging.getLogger("x").makeRecord(
            "x",
            logging.WARNING,
            __file__,
            1,
            "hook %s denied",
            ("guard",),
            None,
            extra={"hook_name": "guard", "tool_name": "write_file", "error": None},
        )
        payload = json.loads(JsonFormatter().format(record))
        self.assertEqual(payload["message"], "hook guard denied")
        self.assertEqual(payload["context"], {"hook_name": "guard", "tool_name": "write_file"})

        plain = logging.getLogger("x").makeRecord("x", logging.INFO, __file__, 1, "ready", (), None)
        self.assertNotIn("context", json.loads(JsonFormatter().format(plain)))

    def test_json_formatter_includes_exception(self) -> None:
        try:
            raise ValueError("bad hook")
        except ValueError:
            record = logging.getLogger("x").makeRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
        payload = json.loads(JsonFormatter().format(record))
        self.assertIn("ValueError: bad hook", payload["exc_info"])


if __name__ == "__main__":
    unittest.main()
