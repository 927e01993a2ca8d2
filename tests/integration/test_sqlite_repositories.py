import pytest
from datetime import datetime
from decimal import Decimal

from expense_matcher.database.connection import DatabaseConfig, DatabaseManager
from expense_matcher.domain.enums import BuiltInCategory
from expense_matcher.domain.models import BuiltIn, Custom, Entry
from expense_matcher.repositories.base import EntryNotFoundError
from expense_matcher.repositories.sqlite_entry_repository import SQLiteEntryRepository
from expense_matcher.repositories.sqlite_learned_repository import SQLiteLearnedVocabularyRepository

COFFEE = BuiltIn(BuiltInCategory.COFFEE)


@pytest.fixture
def test_db(tmp_path):
    """
    Create a real test database.

    Use pytest's tmp_path fixture to create a temporary directory. The schema
    is applied when the first connection opens.
    """
    db_manager = DatabaseManager(DatabaseConfig(tmp_path / "test.db"))

    yield db_manager

    db_manager.close()


@pytest.fixture
def repo(test_db) -> SQLiteEntryRepository:
    return SQLiteEntryRepository(test_db)


@pytest.fixture
def learned_repo(test_db) -> SQLiteLearnedVocabularyRepository:
    return SQLiteLearnedVocabularyRepository(test_db)


@pytest.fixture
def sample_entry() -> Entry:
    return Entry(
        description="Coffee at Starbucks",
        amount=Decimal("5.40"),
        category=COFFEE,
        created_at=datetime(2025, 3, 3, 8, 15),
        confidence=0.95,
    )


@pytest.mark.integration
class TestSchema:

    def test_schema_version_recorded(self, test_db: DatabaseManager):
        row = test_db.get_connection().execute("SELECT MAX(version) AS version FROM schema_version").fetchone()

        assert row["version"] == 1

    def test_reopening_applies_schema_again_safely(self, tmp_path):
        path = tmp_path / "again.db"
        with DatabaseManager(DatabaseConfig(path)) as db:
            SQLiteEntryRepository(db).save(Entry(description="tea", amount=Decimal("2")))

        with DatabaseManager(DatabaseConfig(path)) as db:
            assert len(SQLiteEntryRepository(db).get_all()) == 1


@pytest.mark.integration
class TestSQLiteEntryRepository:
    """Test suite for the entry repository. Uses a real temp db."""

    def test_save_entry(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        """Test saving creates a record with an ID."""
        # Act
        saved = repo.save(sample_entry)

        # Assert
        assert saved.id is not None
        assert saved.id > 0

    def test_get_by_id_round_trips_values(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        saved = repo.save(sample_entry)

        loaded = repo.get_by_id(saved.id)

        assert loaded.description == "Coffee at Starbucks"
        assert loaded.amount == Decimal("5.40")
        assert isinstance(loaded.amount, Decimal)
        assert loaded.category == COFFEE
        assert loaded.created_at == datetime(2025, 3, 3, 8, 15)
        assert loaded.confidence == pytest.approx(0.95)

    def test_custom_category_round_trip(self, repo: SQLiteEntryRepository):
        saved = repo.save(Entry(description="kibble", amount=Decimal("20"), category=Custom("Pet Supplies")))

        assert repo.get_by_id(saved.id).category == Custom("Pet Supplies")

    def test_custom_label_matching_builtin_name_stays_custom(self, repo: SQLiteEntryRepository):
        saved = repo.save(Entry(description="x", amount=Decimal("1"), category=Custom("Coffee")))

        assert repo.get_by_id(saved.id).category == Custom("Coffee")

    def test_get_by_id_missing(self, repo: SQLiteEntryRepository):
        assert repo.get_by_id(999) is None

    def test_get_all_newest_first(self, repo: SQLiteEntryRepository):
        repo.save(Entry(description="old", amount=Decimal("1"), created_at=datetime(2025, 1, 1)))
        repo.save(Entry(description="new", amount=Decimal("2"), created_at=datetime(2025, 2, 1)))

        assert [e.description for e in repo.get_all()] == ["new", "old"]

    def test_get_all_filters_by_category(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        repo.save(sample_entry)
        repo.save(Entry(description="kibble", amount=Decimal("20"), category=Custom("Pet Supplies")))

        result = repo.get_all(category=COFFEE)

        assert [e.description for e in result] == ["Coffee at Starbucks"]

    def test_update(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        saved = repo.save(sample_entry)
        saved.category = BuiltIn(BuiltInCategory.FOOD_DINING)
        saved.confidence = 1.0

        repo.update(saved)

        loaded = repo.get_by_id(saved.id)
        assert loaded.category == BuiltIn(BuiltInCategory.FOOD_DINING)
        assert loaded.confidence == 1.0

    def test_update_missing_raises(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        sample_entry.id = 999

        with pytest.raises(EntryNotFoundError):
            repo.update(sample_entry)

    def test_update_without_id_raises(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        with pytest.raises(ValueError):
            repo.update(sample_entry)

    def test_delete(self, repo: SQLiteEntryRepository, sample_entry: Entry):
        saved = repo.save(sample_entry)

        assert repo.delete(saved.id)
        assert repo.get_by_id(saved.id) is None
        assert not repo.delete(saved.id)


@pytest.mark.integration
class TestSQLiteLearnedVocabularyRepository:

    def test_save_and_list_terms(self, learned_repo: SQLiteLearnedVocabularyRepository):
        learned_repo.save_term("xyz widget", BuiltIn(BuiltInCategory.ELECTRONICS))
        learned_repo.save_term("kibble", Custom("Pet Supplies"))

        assert learned_repo.list_terms() == [
            ("xyz widget", BuiltIn(BuiltInCategory.ELECTRONICS)),
            ("kibble", Custom("Pet Supplies")),
        ]

    def test_saving_term_again_moves_it(self, learned_repo: SQLiteLearnedVocabularyRepository):
        learned_repo.save_term("xyz widget", BuiltIn(BuiltInCategory.ELECTRONICS))
        learned_repo.save_term("xyz widget", BuiltIn(BuiltInCategory.SHOPPING))

        assert learned_repo.list_terms() == [("xyz widget", BuiltIn(BuiltInCategory.SHOPPING))]

    def test_delete_abbreviation(self, learned_repo: SQLiteLearnedVocabularyRepository):
        learned_repo.save_abbreviation("xyz", "electronics")
        learned_repo.save_abbreviation("xyz", "shopping")

        assert learned_repo.delete_abbreviation("xyz", "electronics")
        assert not learned_repo.delete_abbreviation("xyz", "electronics")
        assert learned_repo.list_abbreviations() == {"xyz": ["shopping"]}

    def test_abbreviations(self, learned_repo: SQLiteLearnedVocabularyRepository):
        learned_repo.save_abbreviation("xyz", "electronics")
        learned_repo.save_abbreviation("xyz", "electronics")
        learned_repo.save_abbreviation("xyz", "shopping")
        learned_repo.save_abbreviation("pk", "pet supplies")

        assert learned_repo.list_abbreviations() == {
            "xyz": ["electronics", "shopping"],
            "pk": ["pet supplies"],
        }
