"""Batch validation: one verify call per input item, isolating per-item failures."""

import csv
import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .cancel import CancelToken
from .client import Client
from .errors import CancelledError, InputError, OutputError, TruelistError
from .models import STATES, ValidationResult

logger = logging.getLogger(__name__)

EMAIL_COLUMN_CANDIDATES = ("email", "email_address", "emailaddress", "e-mail", "mail")
RESULT_COLUMNS = ("truelist_state", "truelist_sub_state", "truelist_suggestion")
ERROR_STATE = "error"


# --------------------------
# Outcomes
# --------------------------


@dataclass(frozen=True)
class ItemSuccess:
    email: str
    result: ValidationResult


@dataclass(frozen=True)
class ItemFailure:
    email: str
    error: TruelistError

    @property
    def warning(self) -> str:
        return f"failed to validate {self.email}: {self.error}"


ItemOutcome = Union[ItemSuccess, ItemFailure]


@dataclass
class BatchReport:
    counts: Dict[str, int] = field(default_factory=lambda: dict.fromkeys(STATES, 0))
    failed: int = 0
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(self.counts.values())

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def results(self) -> List[ValidationResult]:
        return [o.result for o in self.outcomes if isinstance(o, ItemSuccess)]

    @property
    def warnings(self) -> List[str]:
        return [o.warning for o in self.outcomes if isinstance(o, ItemFailure)]

    def record(self, outcome: ItemOutcome) -> None:
        self.outcomes.append(outcome)
        if isinstance(outcome, ItemFailure):
            self.failed += 1
            return
        state = outcome.result.category
        # States the service adds later are tallied as unknown.
        if state not in self.counts:
            state = "unknown"
        self.counts[state] += 1


# --------------------------
# Runner
# --------------------------


class BatchRunner:
    """Validates items one by one and accumulates a BatchReport.

    ``on_result`` and ``on_warning`` are called as each item finishes so a
    caller can stream output instead of waiting for the whole batch.
    """

    def __init__(
        self,
        client: Client,
        cancel: Optional[CancelToken] = None,
        on_result: Optional[Callable[[ValidationResult], None]] = None,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        self.client = client
        self.cancel = cancel
        self.on_result = on_result
        self.on_warning = on_warning
        self.report = BatchReport()

    def process(self, item: str) -> Optional[ItemOutcome]:
        """Validate one item; return None if it is blank."""
        email = item.strip()
        if not email:
            return None

        outcome: ItemOutcome
        try:
            result = self.client.validate(email, self.cancel)
        except CancelledError:
            raise
        except TruelistError as e:
            outcome = ItemFailure(email, e)
            logger.debug("validation failed for %s: %s", email, e)
            self.report.record(outcome)
            if self.on_warning:
                self.on_warning(outcome.warning)
            return outcome

        outcome = ItemSuccess(email, result)
        self.report.record(outcome)
        if self.on_result:
            self.on_result(result)
        return outcome

    def run(self, items: Iterable[str]) -> BatchReport:
        """Process every item.

        Only a failure reading ``items`` or a cancellation stops the batch.
        """
        iterator = iter(items)
        while True:
            try:
                item = next(iterator)
            except StopIteration:
                break
            except (OSError, UnicodeDecodeError) as e:
                raise InputError(f"error reading input: {e}") from e
            self.process(item)
        return self.report

    def process_row(self, row: List[str], email_col: int) -> List[str]:
        """Return ``row`` with the three result columns appended."""
        if email_col >= len(row):
            return row + ["", "", ""]
        outcome = self.process(row[email_col])
        if outcome is None:
            return row + ["", "", ""]
        if isinstance(outcome, ItemFailure):
            return row + [ERROR_STATE, str(outcome.error), ""]
        r = outcome.result
        return row + [r.state, r.sub_state, r.suggestion or ""]


# --------------------------
# CSV helpers
# --------------------------


def find_email_column(header: List[str], column: Optional[str] = None) -> int:
    """Index of the email column, or -1 if it cannot be found.

    An explicit ``column`` is matched case-insensitively; otherwise the first
    header that looks like an email column wins.
    """
    normalized = [h.strip().lower() for h in header]
    if column:
        wanted = column.strip().lower()
        return normalized.index(wanted) if wanted in normalized else -1
    for i, h in enumerate(normalized):
        if h in EMAIL_COLUMN_CANDIDATES:
            return i
    return -1


def default_output_path(input_path: str) -> str:
    base, ext = os.path.splitext(input_path)
    return f"{base}_validated{ext}"


def read_csv(path: str) -> Tuple[List[str], List[List[str]]]:
    """Read the header and all rows; raises InputError if the file is unusable."""
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.reader(f)
            try:
                header = next(reader)
            except StopIteration:
                raise InputError("could not read CSV header: file is empty") from None
            rows = list(reader)
    except OSError as e:
        raise InputError(f"could not open file: {e}") from e
    except (csv.Error, UnicodeDecodeError) as e:
        raise InputError(f"error reading CSV: {e}") from e
    return header, rows


def write_validated_csv(
    runner: BatchRunner,
    header: List[str],
    rows: List[List[str]],
    email_col: int,
    output_path: str,
    on_row: Optional[Callable[[], None]] = None,
) -> BatchReport:
    """Validate every row and write the augmented CSV to ``output_path``."""
    try:
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(list(header) + list(RESULT_COLUMNS))
            for row in rows:
                writer.writerow(runner.process_row(row, email_col))
                if on_row:
                    on_row()
    except OSError as e:
        raise OutputError(f"could not write output file: {e}") from e
    return runner.report
