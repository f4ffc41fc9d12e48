"""
Tests for the external ID generator
"""
import re
from datetime import date
from unittest.mock import patch

import pytest

from core.exceptions import GenerationError
from core.generator import ExternalIDGenerator, certificate_id_generator, participant_id_generator


class TestExternalIDGenerator:
    """Tests for ExternalIDGenerator"""

    def test_participant_id_format(self):
        generated = participant_id_generator().generate(on=date(2024, 3, 9))
        assert re.fullmatch(r"BHM202403\d{4}", generated)

    def test_certificate_id_format(self):
        generated = certificate_id_generator().generate(on=date(2023, 11, 30))
        assert re.fullmatch(r"CERT202311\d{4}", generated)

    def test_random_part_range(self):
        generator = ExternalIDGenerator("BHM")
        for _ in range(50):
            suffix = int(generator.generate(on=date(2024, 1, 1))[-4:])
            assert 1000 <= suffix <= 9999

    def test_skips_existing_ids(self):
        generator = ExternalIDGenerator("BHM")
        existing = {"BHM2024061000", "BHM2024061001"}

        with patch("core.generator.random.randint", side_effect=[1000, 1001, 1002]):
            generated = generator.generate(on=date(2024, 6, 1), existing_ids=existing)

        assert generated == "BHM2024061002"

    def test_exhaustion(self):
        generator = ExternalIDGenerator("CERT")
        generator.max_attempts = 5

        with patch("core.generator.random.randint", return_value=4242):
            with pytest.raises(GenerationError):
                generator.generate(on=date(2024, 6, 1), existing_ids={"CERT2024064242"})
