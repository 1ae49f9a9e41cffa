"""
Tests for tracking link code generation strategies.
"""
import pytest

from diagnostics_app.exceptions import LinkCodeGenerationError
from diagnostics_app.models.tracking import TrackingLink
from diagnostics_app.services.link_code_factory import LinkCodeFactory, LinkCodeStrategyType
from diagnostics_app.services.link_code_strategies import (
    Base62LinkCodeStrategy,
    RandomHexLinkCodeStrategy,
)


def store_link(db_session, code):
    db_session.add(TrackingLink(user_id="alice", link_name="taken", link_code=code))
    db_session.commit()


class TestRandomHexStrategy:
    """Test random hex strategy"""

    def test_generates_hex_of_expected_length(self, db_session):
        strategy = RandomHexLinkCodeStrategy(num_bytes=8)

        code = strategy.generate(sequence=1, db_session=db_session)

        assert len(code) == 16
        int(code, 16)  # valid hex

    def test_codes_are_not_sequential(self, db_session):
        strategy = RandomHexLinkCodeStrategy(num_bytes=8)

        codes = {strategy.generate(sequence=1, db_session=db_session) for _ in range(20)}

        assert len(codes) == 20

    def test_gives_up_after_max_retries(self, db_session, monkeypatch):
        """Test that a permanent collision raises instead of looping forever"""
        store_link(db_session, "00" * 4)
        monkeypatch.setattr(
            "diagnostics_app.services.link_code_strategies.secrets.token_hex",
            lambda num_bytes: "00" * num_bytes,
        )
        strategy = RandomHexLinkCodeStrategy(num_bytes=4, max_retries=3)

        with pytest.raises(LinkCodeGenerationError):
            strategy.generate(sequence=1, db_session=db_session)


class TestBase62Strategy:
    """Test Base62 encoding strategy"""

    def test_same_sequence_same_code(self, db_session):
        """Test that same sequence generates same code (deterministic)"""
        strategy = Base62LinkCodeStrategy(salt=1000, max_length=5)

        code1 = strategy.generate(sequence=123, db_session=db_session)
        code2 = strategy.generate(sequence=123, db_session=db_session)

        assert code1 == code2

    def test_different_sequence_different_code(self, db_session):
        strategy = Base62LinkCodeStrategy(salt=1000, max_length=5)

        codes = {strategy.generate(sequence=n, db_session=db_session) for n in range(1, 101)}

        assert len(codes) == 100
        assert all(len(code) <= 5 and code.isalnum() for code in codes)

    def test_obfuscation_with_salt(self):
        """Test that salt shifts the sequence"""
        assert Base62LinkCodeStrategy(salt=0).encode(1) != Base62LinkCodeStrategy(salt=1000).encode(1)

    def test_known_encodings(self):
        strategy = Base62LinkCodeStrategy(salt=0)

        assert strategy.encode(0) == "0"
        assert strategy.encode(61) == "Z"
        assert strategy.encode(62) == "10"

    def test_skips_taken_code(self, db_session):
        """Test that a code freed by a deleted link is not handed out twice"""
        strategy = Base62LinkCodeStrategy(salt=1000, max_length=5)
        store_link(db_session, strategy.encode(5))

        code = strategy.generate(sequence=5, db_session=db_session)

        assert code == strategy.encode(6)

    def test_exceeding_max_length_raises(self):
        strategy = Base62LinkCodeStrategy(salt=0, max_length=2)

        with pytest.raises(ValueError):
            strategy.encode(62 ** 2)


class TestLinkCodeFactory:
    """Test strategy factory"""

    def setup_method(self):
        LinkCodeFactory.clear_instances()

    def test_creates_random_hex_strategy(self):
        strategy = LinkCodeFactory.create_strategy(LinkCodeStrategyType.RANDOM_HEX)
        assert isinstance(strategy, RandomHexLinkCodeStrategy)

    def test_creates_base62_strategy(self):
        strategy = LinkCodeFactory.create_strategy(LinkCodeStrategyType.BASE62)
        assert isinstance(strategy, Base62LinkCodeStrategy)

    def test_caches_instances(self):
        first = LinkCodeFactory.create_strategy(LinkCodeStrategyType.BASE62)
        assert LinkCodeFactory.create_strategy(LinkCodeStrategyType.BASE62) is first

    def test_default_comes_from_settings(self):
        """Random hex is the configured default"""
        strategy = LinkCodeFactory.create_strategy()
        assert isinstance(strategy, RandomHexLinkCodeStrategy)
