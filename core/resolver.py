# =============================================================================
# core/resolver.py - Collision-free identifier resolution
# =============================================================================

import logging
from typing import Iterable, Optional

from core.directory import DirectoryService, DirectoryError
from core.identifiers import MAX_IDENTIFIER_LENGTH, truncate_identifier
from core.models import Outcome, OutcomeLevel, Resolution, ResolvedIdentity

MAX_SUFFIX_ATTEMPT = 99
SUFFIX_WIDTH = 3  # "-NN"


class ExhaustedError(Exception):
    """No free identifier could be found for a base identifier"""

    def __init__(self, base_identifier: str):
        super().__init__(
            f"No free identifier for '{base_identifier}' after {MAX_SUFFIX_ATTEMPT + 1} attempts"
        )
        self.base_identifier = base_identifier


def normalize_principal_suffix(suffix: Optional[str]) -> str:
    """Ensure the principal suffix starts with '@'"""
    suffix = (suffix or "").strip()
    return suffix if suffix.startswith("@") else f"@{suffix}"


def candidate_for_attempt(base_identifier: str, attempt: int) -> str:
    """Attempt 0 is the capped base; attempts 1..99 reserve room for '-NN'"""
    if attempt == 0:
        return truncate_identifier(base_identifier)
    core = truncate_identifier(base_identifier, MAX_IDENTIFIER_LENGTH - SUFFIX_WIDTH)
    return f"{core}-{attempt:02d}"


class UniquenessResolver:
    """Finds the first identifier/principal pair not present in the directory"""

    def __init__(self, directory: DirectoryService):
        self.directory = directory
        self.logger = logging.getLogger(self.__class__.__name__)

    def try_resolve(self, base_identifier: str, principal_suffix: str,
                    reserved: Iterable[str] = ()) -> Resolution:
        """
        Walk attempts 0..99 and stop at the first candidate with no collision.

        Names in ``reserved`` (identifiers or principals, any case) count as
        taken without a directory lookup.

        A failed lookup is neither free nor taken: the attempt is recorded as
        an ADQuery diagnostic and the search moves on to the next suffix.

        Returns:
            Resolution with ``identity`` set, or unset when every attempt
            collided or failed.
        """
        suffix = normalize_principal_suffix(principal_suffix)
        reserved = {name.lower() for name in reserved}
        resolution = Resolution(base_identifier=base_identifier)

        for attempt in range(MAX_SUFFIX_ATTEMPT + 1):
            candidate = candidate_for_attempt(base_identifier, attempt)
            principal = f"{candidate}{suffix}"

            if candidate.lower() in reserved or principal.lower() in reserved:
                self.logger.debug(f"Candidate {candidate} is already assigned in this run")
                continue

            try:
                existing = self.directory.find_by_identifier_or_principal(candidate, principal)
            except DirectoryError as e:
                self.logger.warning(f"Lookup failed for candidate {candidate}: {e.reason}")
                resolution.diagnostics.append(Outcome(
                    OutcomeLevel.AD_QUERY,
                    f"Lookup failed while checking candidate: {e.reason}",
                    {"candidate": candidate, "principal": principal, "attempt": str(attempt)},
                ))
                continue

            if existing:
                self.logger.debug(f"Candidate {candidate} is taken")
                continue

            resolution.identity = ResolvedIdentity(candidate, principal)
            resolution.attempt = attempt
            self._add_success_diagnostics(resolution, candidate)
            return resolution

        self.logger.warning(f"Exhausted identifier attempts for {base_identifier}")
        return resolution

    def resolve(self, base_identifier: str, principal_suffix: str,
                reserved: Iterable[str] = ()) -> ResolvedIdentity:
        """Like try_resolve, but raises ExhaustedError instead of returning an empty result"""
        resolution = self.try_resolve(base_identifier, principal_suffix, reserved)
        if not resolution.found:
            raise ExhaustedError(base_identifier)
        return resolution.identity

    def _add_success_diagnostics(self, resolution: Resolution, candidate: str) -> None:
        base = resolution.base_identifier

        if len(base) > MAX_IDENTIFIER_LENGTH:
            resolution.diagnostics.append(Outcome(
                OutcomeLevel.USERNAME_TRUNCATED,
                f"Identifier truncated to {MAX_IDENTIFIER_LENGTH} characters",
                {"base": base, "truncated": truncate_identifier(base)},
            ))

        if resolution.attempt:
            resolution.diagnostics.append(Outcome(
                OutcomeLevel.USERNAME_DEDUP,
                "Identifier already taken, suffix applied",
                {"base": base, "identifier": candidate, "attempt": str(resolution.attempt)},
            ))
