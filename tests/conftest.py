import pytest
import pytest_asyncio

# ============================================================================
# Database / Store Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def in_memory_database():
    """Create an in-memory SQLite database for testing."""
    from discord_loot_polls.infrastructure.persistence.database import Database

    db = Database(":memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def file_database(tmp_path):
    """File-backed SQLite database; WAL and busy_timeout let concurrent writers queue."""
    from discord_loot_polls.infrastructure.persistence.database import Database

    db = Database(f"sqlite:///{tmp_path / 'polls.db'}")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def sqlite_store(file_database):
    """SQLite-backed ballot store."""
    from discord_loot_polls.infrastructure.persistence.repositories.ballot_repository import (
        SQLiteBallotStore,
    )

    return SQLiteBallotStore(file_database)


@pytest.fixture
def memory_store():
    from discord_loot_polls.infrastructure.persistence.repositories.memory_repository import (
        InMemoryBallotStore,
    )

    return InMemoryBallotStore()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, memory_store, sqlite_store):
    """Every ballot store implementation, for contract tests."""
    return memory_store if request.param == "memory" else sqlite_store


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    from discord_loot_polls.config.settings import DatabaseSettings, Settings

    return Settings(environment="test", database=DatabaseSettings(url="sqlite:///:memory:"))


@pytest.fixture
def container(test_settings, store):
    """Container wired to each ballot store implementation in turn."""
    from discord_loot_polls.config.container import create_container

    return create_container(test_settings, store=store)


@pytest_asyncio.fixture
async def guild_polls(store):
    """Two open ballots in guild 1000 with a spread of entries, plus a ballot in another guild."""
    boss = await store.create_ballot(guild_id=1000, name="Tevent")
    arch = await store.create_ballot(guild_id=1000, name="Queen Bellandir")
    foreign = await store.create_ballot(guild_id=2000, name="Elsewhere")

    entries = {
        "gs": await store.upsert_entry(boss.id, "Tevent's Greatsword", "weapon", "gs"),
        "lb": await store.upsert_entry(boss.id, "Tevent's Longbow", "weapon", "lb"),
        "staff": await store.upsert_entry(arch.id, "Queen's Staff", "weapon", "staff"),
        "gs2": await store.upsert_entry(arch.id, "Queen's Greatsword", "weapon", "gs"),
        "chest": await store.upsert_entry(boss.id, "Tevent's Plate", "armor", "chest"),
        "chest2": await store.upsert_entry(arch.id, "Queen's Robe", "armor", "chest"),
        "earring": await store.upsert_entry(boss.id, "Abyssal Earring", "accessory", "earring"),
        "earring2": await store.upsert_entry(arch.id, "Queen's Earring", "accessory", "earring"),
        "earring3": await store.upsert_entry(arch.id, "Sand Earring", "accessory", "earring"),
        "foreign": await store.upsert_entry(foreign.id, "Far Sword", "weapon", "sns"),
    }
    return {"boss": boss, "arch": arch, "foreign": foreign, "entries": entries}


# ============================================================================
# Domain Helper Fixtures
# ============================================================================


@pytest.fixture
def make_entry():
    from discord_loot_polls.domain.polls.entities import Entry

    counter = iter(range(1, 10_000))

    def _make(category: str, slot: str = "", *, ballot_id: int = 1, name: str | None = None):
        entry_id = next(counter)
        return Entry(
            id=entry_id,
            ballot_id=ballot_id,
            name=name or f"{category}-{slot or 'any'}-{entry_id}",
            category=category,
            slot=slot,
        )

    return _make


@pytest.fixture
def make_held():
    from discord_loot_polls.domain.polls.entities import HeldVote, Vote
    from discord_loot_polls.domain.polls.value_objects import VotingContext

    def _make(
        entry,
        *,
        user_id: int = 42,
        context: VotingContext = VotingContext.MAIN_PVP,
        ballot_name: str = "Ballot",
        ballot_is_open: bool = True,
    ):
        vote = Vote(
            ballot_id=entry.ballot_id,
            entry_id=entry.id,
            user_id=user_id,
            voting_context=context,
        )
        return HeldVote(
            vote=vote, entry=entry, ballot_name=ballot_name, ballot_is_open=ballot_is_open
        )

    return _make
