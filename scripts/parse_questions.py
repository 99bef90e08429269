"""Parse plain-text quiz exports into a JSON question bank.

The exports this script understands look like a course platform's "review
answers" page pasted into a text file: a question line, one line per option,
then grading chatter that varies between exports, and finally the accepted
answer.

```
What is 2+2?
3
4
5

Yes, the answer is correct.
Score: 1
Accepted Answers:
4
1 point
```

Every complete block becomes one record:

```
{"question": "What is 2+2?", "options": ["3", "4", "5"], "answer": "4"}
```

Blocks without an ``Accepted Answers:`` marker, or with an empty question,
option list or answer, are skipped rather than reported as errors.

Usage example (read a file, overwrite the default bank):

    python scripts/parse_questions.py --in exports/week1.txt

Append another export read from stdin:

    cat exports/week2.txt | python scripts/parse_questions.py --append
"""

from __future__ import annotations

import argparse
import logging
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

try:  # pragma: no cover - import fallbacks for script vs package execution
    from . import question_bank
except ImportError:  # pragma: no cover
    import question_bank  # type: ignore


OUTPUT_PATH = Path("public/questions.json")


CONFIRMATION_PATTERN = re.compile(r"^Yes,\s*the\s*answer\s*is\s*correct\.?", re.IGNORECASE)
SCORE_PATTERN = re.compile(r"^Score:", re.IGNORECASE)
ACCEPTED_PATTERN = re.compile(r"^Accepted Answers:", re.IGNORECASE)
POINTS_PATTERN = re.compile(r"[0-9]+\s*points?", re.IGNORECASE)
# Byte-order marks count as whitespace at either end of a line.
EDGE_SPACE_PATTERN = re.compile(r"^[\s\ufeff]+|[\s\ufeff]+$")


class LineKind(Enum):
    BLANK = "blank"
    CONFIRMATION = "confirmation"
    SCORE = "score"
    ACCEPTED_MARKER = "accepted_marker"
    POINTS = "points"
    CONTENT = "content"


class ScanState(Enum):
    SEEK_QUESTION = "seek_question"
    COLLECT_OPTIONS = "collect_options"
    SEEK_ACCEPTED_MARKER = "seek_accepted_marker"
    READ_ANSWER = "read_answer"
    TRAILING_SKIP = "trailing_skip"
    DONE = "done"


# Kinds skipped while looking for the next question line.
QUESTION_NOISE: FrozenSet[LineKind] = frozenset(
    {
        LineKind.BLANK,
        LineKind.CONFIRMATION,
        LineKind.SCORE,
        LineKind.POINTS,
        LineKind.ACCEPTED_MARKER,
    }
)

ANSWER_NOISE: FrozenSet[LineKind] = frozenset({LineKind.BLANK})

# Kinds skipped after an answer. Confirmation and marker lines are left for
# the next question search.
TRAILING_NOISE: FrozenSet[LineKind] = frozenset(
    {
        LineKind.BLANK,
        LineKind.SCORE,
        LineKind.POINTS,
    }
)


@dataclass(frozen=True)
class QuestionRecord:
    question: str
    options: Tuple[str, ...]
    answer: str

    def is_complete(self) -> bool:
        return bool(self.question) and len(self.options) > 0 and bool(self.answer)

    def to_dict(self) -> Dict[str, object]:
        return {
            "question": self.question,
            "options": list(self.options),
            "answer": self.answer,
        }


def normalise_line(line: str) -> str:
    return EDGE_SPACE_PATTERN.sub("", line.replace("\r", ""))


def normalise_lines(raw_text: str) -> List[str]:
    """Split on ``\\n`` only; blank lines are kept as separators."""
    return [normalise_line(line) for line in raw_text.split("\n")]


def classify_line(line: str) -> LineKind:
    if line == "":
        return LineKind.BLANK
    if CONFIRMATION_PATTERN.match(line):
        return LineKind.CONFIRMATION
    if SCORE_PATTERN.match(line):
        return LineKind.SCORE
    if ACCEPTED_PATTERN.match(line):
        return LineKind.ACCEPTED_MARKER
    if POINTS_PATTERN.fullmatch(line):
        return LineKind.POINTS
    return LineKind.CONTENT


class QuestionScanner:
    """Forward-only state machine over normalised lines.

    Each ``_step_*`` method handles one state, moves the cursor and returns
    the next state. The cursor never moves backwards, so a scan always
    terminates after at most one pass over the input.
    """

    def __init__(self, lines: Sequence[str]) -> None:
        self.lines = list(lines)
        self.cursor = 0
        self.state = ScanState.SEEK_QUESTION
        self.records: List[QuestionRecord] = []
        self.dropped = 0
        self._question = ""
        self._options: List[str] = []
        self._answer = ""

    def _at_end(self) -> bool:
        return self.cursor >= len(self.lines)

    def _kind(self) -> LineKind:
        return classify_line(self.lines[self.cursor])

    def _skip(self, kinds: FrozenSet[LineKind]) -> None:
        while not self._at_end() and self._kind() in kinds:
            self.cursor += 1

    def _step_seek_question(self) -> ScanState:
        self._skip(QUESTION_NOISE)
        if self._at_end():
            return ScanState.DONE
        self._question = self.lines[self.cursor]
        self._options = []
        self._answer = ""
        self.cursor += 1
        return ScanState.COLLECT_OPTIONS

    def _step_collect_options(self) -> ScanState:
        while not self._at_end() and self._kind() is LineKind.CONTENT:
            self._options.append(self.lines[self.cursor])
            self.cursor += 1
        return ScanState.SEEK_ACCEPTED_MARKER

    def _step_seek_accepted_marker(self) -> ScanState:
        # Noise and stray content alike are passed over here.
        while not self._at_end() and self._kind() is not LineKind.ACCEPTED_MARKER:
            self.cursor += 1
        if self._at_end():
            logging.debug("No accepted answer after question %r; dropping it", self._question)
            self.dropped += 1
            return ScanState.DONE
        return ScanState.READ_ANSWER

    def _step_read_answer(self) -> ScanState:
        self.cursor += 1
        self._skip(ANSWER_NOISE)
        # Taken verbatim, even when it looks like metadata (e.g. "Score: 5").
        self._answer = "" if self._at_end() else self.lines[self.cursor]
        self.cursor += 1
        return ScanState.TRAILING_SKIP

    def _step_trailing_skip(self) -> ScanState:
        self._skip(TRAILING_NOISE)
        candidate = QuestionRecord(
            question=self._question,
            options=tuple(self._options),
            answer=self._answer,
        )
        if candidate.is_complete():
            self.records.append(candidate)
        else:
            logging.debug("Incomplete question %r skipped", candidate.question)
            self.dropped += 1
        return ScanState.SEEK_QUESTION

    def step(self) -> ScanState:
        handlers = {
            ScanState.SEEK_QUESTION: self._step_seek_question,
            ScanState.COLLECT_OPTIONS: self._step_collect_options,
            ScanState.SEEK_ACCEPTED_MARKER: self._step_seek_accepted_marker,
            ScanState.READ_ANSWER: self._step_read_answer,
            ScanState.TRAILING_SKIP: self._step_trailing_skip,
        }
        if self.state is not ScanState.DONE:
            self.state = handlers[self.state]()
        return self.state

    def run(self) -> List[QuestionRecord]:
        while self.step() is not ScanState.DONE:
            pass
        return list(self.records)


def parse_raw_text(raw_text: str) -> List[QuestionRecord]:
    scanner = QuestionScanner(normalise_lines(raw_text))
    records = scanner.run()
    if scanner.dropped:
        logging.debug("Dropped %d malformed question block(s)", scanner.dropped)
    return records


def read_input(input_path: Optional[Path]) -> str:
    if input_path is None:
        return sys.stdin.buffer.read().decode("utf-8-sig")
    return input_path.read_text(encoding="utf-8-sig")


def configure_logging(log_dir: Optional[Path], verbose: bool = False) -> Optional[Path]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    log_path: Optional[Path] = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = log_dir / f"parse_{timestamp}.log"
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        handlers=handlers,
        force=True,
    )
    if log_path is not None:
        logging.debug("Logging to %s", log_path)
    return log_path


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Parse plain-text quiz exports into a JSON question bank")
    parser.add_argument(
        "--in",
        "-i",
        dest="input",
        type=Path,
        default=None,
        help="Quiz export to read (default: standard input)",
    )
    parser.add_argument(
        "--out",
        "-o",
        dest="output",
        type=Path,
        default=OUTPUT_PATH,
        help="Destination JSON file (default: public/questions.json)",
    )
    parser.add_argument(
        "--append",
        action="store_true",
        help="Append to an existing question bank instead of overwriting",
    )
    parser.add_argument(
        "--log-dir",
        type=Path,
        default=None,
        help="Also write a run log into this directory",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_dir, verbose=args.verbose)

    source = args.input if args.input is not None else "<stdin>"
    try:
        raw_text = read_input(args.input)
    except (OSError, UnicodeDecodeError) as exc:
        logging.error("Could not read %s: %s", source, exc)
        raise SystemExit(1)

    parsed = parse_raw_text(raw_text)
    logging.debug("Parsed %d question(s) from %s", len(parsed), source)

    bank = question_bank.build_bank(args.output, parsed, append=args.append)
    question_bank.write_bank(args.output, bank)

    suffix = " (appended)" if args.append else ""
    print(f"Wrote {len(parsed)} question(s) to {args.output}{suffix}.")


if __name__ == "__main__":
    main()
