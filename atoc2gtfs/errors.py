"""Error kinds raised while converting an ATOC CIF feed."""

from collections.abc import Iterable, Mapping

from atoc2gtfs.cif.models import FileKind


class ConversionError(Exception):
    """Base class for every fatal conversion error."""


class MissingExpectedFilesError(ConversionError):
    """Input archive lacks exactly one file of each expected kind."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = frozenset(missing)
        super().__init__(
            f"ATOC input does not contain expected file type(s): {sorted(self.missing)}"
        )


class MalformedRecordError(ConversionError):
    """A fixed-width line could not be decoded."""

    def __init__(
        self,
        kind: FileKind,
        tag: str,
        offset: int,
        reason: str,
        line_number: int = 0,
        field: str | None = None,
    ) -> None:
        self.kind = kind
        self.tag = tag
        self.offset = offset
        self.reason = reason
        self.line_number = line_number
        self.field = field
        where = f" field {field!r}" if field else ""
        super().__init__(
            f"Malformed {tag!r} record in {kind.value} file at byte {offset} "
            f"(line {line_number}){where}: {reason}"
        )


class SequencingError(ConversionError):
    """The schedule state machine received a record it cannot accept."""

    def __init__(
        self,
        tag: str,
        state: str,
        reason: str,
        offset: int = 0,
        line_number: int = 0,
        train_uid: str | None = None,
        kind: FileKind = FileKind.SCHEDULE_MASTER,
    ) -> None:
        self.tag = tag
        self.state = state
        self.reason = reason
        self.offset = offset
        self.line_number = line_number
        self.train_uid = train_uid
        self.kind = kind
        uid = f" for train {train_uid}" if train_uid else ""
        super().__init__(
            f"{reason}{uid}: {tag!r} record in state {state} "
            f"({kind.value} file, byte {offset}, line {line_number})"
        )


class DuplicateStationError(ConversionError):
    """Two station entries share a location code but disagree on coordinates."""

    def __init__(self, location_code: str, first: object, second: object, line_number: int = 0) -> None:
        self.location_code = location_code
        self.first = first
        self.second = second
        self.line_number = line_number
        super().__init__(
            f"Duplicate station {location_code!r} with differing coordinates "
            f"(msn file, line {line_number}): {first} vs {second}"
        )


class DanglingStopReferenceError(ConversionError):
    """Trips reference location codes that are not in the station registry."""

    def __init__(self, references: Mapping[str, Iterable[str]]) -> None:
        self.references = {code: sorted(set(trips)) for code, trips in references.items()}
        sample = ", ".join(
            f"{code} (trip {trips[0]}{', ...' if len(trips) > 1 else ''})"
            for code, trips in sorted(self.references.items())[:10]
        )
        super().__init__(
            f"{len(self.references)} location code(s) referenced by trips are not "
            f"known stations: {sample}"
        )
