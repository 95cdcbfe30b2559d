import pytest

from core.directory import InMemoryDirectory
from core.models import OutcomeLevel
from core.resolver import (
    ExhaustedError, UniquenessResolver, candidate_for_attempt, normalize_principal_suffix
)


def levels(resolution):
    return [diagnostic.level for diagnostic in resolution.diagnostics]


class TestCandidateForAttempt:

    def test_attempt_zero_caps_at_twenty(self):
        assert candidate_for_attempt("a" * 25, 0) == "a" * 20

    def test_suffix_reserves_three_characters(self):
        candidate = candidate_for_attempt("a" * 25, 7)
        assert candidate == "a" * 17 + "-07"
        assert len(candidate) == 20

    def test_short_core_is_not_padded(self):
        assert candidate_for_attempt("anowak", 42) == "anowak-42"


@pytest.mark.parametrize("suffix, expected", [
    ("example.local", "@example.local"),
    ("@example.local", "@example.local"),
    ("  example.local ", "@example.local"),
])
def test_normalize_principal_suffix(suffix, expected):
    assert normalize_principal_suffix(suffix) == expected


class TestUniquenessResolver:

    def test_free_identifier_is_returned_unchanged(self):
        resolver = UniquenessResolver(InMemoryDirectory())

        identity = resolver.resolve("anowak", "example.local")

        assert identity.sam_account_name == "anowak"
        assert identity.user_principal_name == "anowak@example.local"

    def test_free_identifier_emits_no_diagnostics(self):
        resolution = UniquenessResolver(InMemoryDirectory()).try_resolve("anowak", "@example.local")

        assert resolution.found
        assert resolution.attempt == 0
        assert resolution.diagnostics == []

    def test_long_base_is_truncated_to_twenty(self):
        base = "mwolfeschlegelsteinhausen"
        resolution = UniquenessResolver(InMemoryDirectory()).try_resolve(base, "example.local")

        assert resolution.identity.sam_account_name == base[:20]
        assert len(resolution.identity.sam_account_name) == 20
        assert levels(resolution) == [OutcomeLevel.USERNAME_TRUNCATED]

    @pytest.mark.parametrize("taken", [1, 3, 42, 99])
    def test_first_free_suffix_wins(self, taken):
        directory = InMemoryDirectory()
        directory.add_account("anowak")
        for attempt in range(1, taken):
            directory.add_account(f"anowak-{attempt:02d}")

        resolution = UniquenessResolver(directory).try_resolve("anowak", "example.local")

        assert resolution.identity.sam_account_name == f"anowak-{taken:02d}"
        assert resolution.identity.user_principal_name == f"anowak-{taken:02d}@example.local"
        assert levels(resolution) == [OutcomeLevel.USERNAME_DEDUP]

    def test_suffixed_long_base_stays_within_limit(self):
        base = "x" * 30
        directory = InMemoryDirectory()
        directory.add_account("x" * 20)

        resolution = UniquenessResolver(directory).try_resolve(base, "example.local")

        assert resolution.identity.sam_account_name == "x" * 17 + "-01"
        assert len(resolution.identity.sam_account_name) <= 20
        assert levels(resolution) == [OutcomeLevel.USERNAME_TRUNCATED, OutcomeLevel.USERNAME_DEDUP]

    def test_principal_collision_blocks_candidate(self):
        directory = InMemoryDirectory()
        directory.add_account("alice.nowak", "anowak@example.local")

        identity = UniquenessResolver(directory).resolve("anowak", "example.local")

        assert identity.sam_account_name == "anowak-01"

    def test_collisions_are_case_insensitive(self):
        directory = InMemoryDirectory()
        directory.add_account("ANowak")

        identity = UniquenessResolver(directory).resolve("anowak", "example.local")

        assert identity.sam_account_name == "anowak-01"

    def test_reserved_names_count_as_taken(self):
        directory = InMemoryDirectory()

        resolution = UniquenessResolver(directory).try_resolve(
            "anowak", "example.local", reserved={"ANOWAK", "anowak-01@example.local"}
        )

        assert resolution.identity.sam_account_name == "anowak-02"
        assert levels(resolution) == [OutcomeLevel.USERNAME_DEDUP]
        assert directory.lookup_calls == [("anowak-02", "anowak-02@example.local")]

    def test_lookup_failure_skips_forward(self):
        directory = InMemoryDirectory()
        directory.failing_identifiers.add("anowak")

        resolution = UniquenessResolver(directory).try_resolve("anowak", "example.local")

        assert resolution.identity.sam_account_name == "anowak-01"
        assert levels(resolution) == [OutcomeLevel.AD_QUERY, OutcomeLevel.USERNAME_DEDUP]
        assert resolution.diagnostics[0].context["candidate"] == "anowak"

    def test_exhaustion_after_one_hundred_attempts(self):
        directory = InMemoryDirectory()
        directory.add_account("anowak")
        for attempt in range(1, 100):
            directory.add_account(f"anowak-{attempt:02d}")

        resolution = UniquenessResolver(directory).try_resolve("anowak", "example.local")

        assert not resolution.found
        assert len(directory.lookup_calls) == 100
        assert directory.create_calls == []

    def test_resolve_raises_exhausted_error_with_base(self):
        directory = InMemoryDirectory()
        directory.failing_identifiers.update(
            ["mwolfeschlegelsteinh"] + [f"mwolfeschlegelste-{i:02d}" for i in range(1, 100)]
        )

        with pytest.raises(ExhaustedError) as excinfo:
            UniquenessResolver(directory).resolve("mwolfeschlegelsteinhausen", "example.local")

        assert excinfo.value.base_identifier == "mwolfeschlegelsteinhausen"
        assert directory.create_calls == []
