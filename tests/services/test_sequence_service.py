"""
Tests for SequenceService document numbering.
"""

from garment_kernel.services.sequence_service import SequenceService


class TestSequenceService:
    def test_first_value_is_one(self, session):
        sequences = SequenceService(session)
        assert sequences.next_value("test_first") == 1
        assert sequences.next_value("test_first") == 2

    def test_sequences_are_independent(self, session):
        sequences = SequenceService(session)
        sequences.next_value("seq_a")
        sequences.next_value("seq_a")
        assert sequences.next_value("seq_b") == 1
        assert sequences.current_value("seq_a") == 2

    def test_current_value_of_unknown_sequence(self, session):
        assert SequenceService(session).current_value("never_used") is None

    def test_ensure_creates_counter_at_zero(self, session):
        sequences = SequenceService(session)
        sequences.ensure("seeded")
        sequences.ensure("seeded")
        assert sequences.current_value("seeded") == 0
        assert sequences.next_value("seeded") == 1

    def test_document_number_format(self, session):
        sequences = SequenceService(session)
        assert sequences.next_document_number("docs", "GI") == "GI-000001"
        assert sequences.next_document_number("docs", "GI", width=3) == "GI-002"
