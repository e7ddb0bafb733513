import pytest

from studyaid.storage import Database, StorageError


@pytest.mark.unit
def test_upsert_user_insert_then_update(db):
    created = db.upsert_user('g-1', 'a@example.com', name='Ada', profile_image='p1')
    assert created['email'] == 'a@example.com'
    assert created['profileImage'] == 'p1'

    updated = db.upsert_user('g-1', 'a@example.com', name='Ada L', profile_image='p2')
    assert updated['name'] == 'Ada L'
    assert updated['profileImage'] == 'p2'
    assert updated['createdAt'] == created['createdAt']
    assert db.get_user('missing') is None


@pytest.mark.unit
def test_material_crud(db, user):
    m = db.create_material(user['id'], 'Acids donate protons.', title='Chem')
    assert m['title'] == 'Chem'
    assert m['keywords'] is None
    assert db.get_material(user['id'], m['id'])['content'] == 'Acids donate protons.'

    kws = [{'keyword': 'Acids', 'detail': 'proton donors'}]
    updated = db.update_material(user['id'], m['id'], keywords=kws)
    assert updated['keywords'] == kws
    assert updated['title'] == 'Chem'

    assert db.delete_material(user['id'], m['id']) is True
    assert db.get_material(user['id'], m['id']) is None
    assert db.delete_material(user['id'], m['id']) is False


@pytest.mark.unit
def test_materials_listed_newest_first(db, user):
    first = db.create_material(user['id'], 'one')
    second = db.create_material(user['id'], 'two')
    assert [m['id'] for m in db.list_materials(user['id'])] == [second['id'], first['id']]


@pytest.mark.unit
def test_materials_are_scoped_to_owner(db, user, other_user):
    m = db.create_material(other_user['id'], 'private')
    assert db.get_material(user['id'], m['id']) is None
    assert db.update_material(user['id'], m['id'], title='x') is None
    assert db.set_material_keywords(user['id'], m['id'], []) is False
    assert db.delete_material(user['id'], m['id']) is False
    assert db.list_materials(user['id']) == []


@pytest.mark.unit
def test_set_material_keywords(db, user, sample_keywords):
    m = db.create_material(user['id'], 'text')
    assert db.set_material_keywords(user['id'], m['id'], sample_keywords) is True
    assert db.get_material(user['id'], m['id'])['keywords'] == sample_keywords


@pytest.mark.unit
def test_flashcard_lifecycle(db, user):
    m = db.create_material(user['id'], 'text')
    cards = db.create_flashcards(user['id'], [{'front': 'Q1', 'back': 'A1'}, {'front': 'Q2', 'back': 'A2'}], study_material_id=m['id'])
    assert [c['mastered'] for c in cards] == [False, False]
    assert all(c['studyMaterialId'] == m['id'] for c in cards)

    loose = db.create_flashcard(user['id'], 'Q3', 'A3')
    assert loose['studyMaterialId'] is None
    assert len(db.list_flashcards(user['id'])) == 3
    assert len(db.list_flashcards(user['id'], study_material_id=m['id'])) == 2

    assert db.set_mastered(user['id'], loose['id'], True) is True
    assert db.get_flashcard(user['id'], loose['id'])['mastered'] is True

    edited = db.update_flashcard(user['id'], loose['id'], back='A3 revised')
    assert edited['front'] == 'Q3'
    assert edited['back'] == 'A3 revised'

    assert db.delete_flashcard(user['id'], loose['id']) is True
    assert db.get_flashcard(user['id'], loose['id']) is None


@pytest.mark.unit
def test_deleting_material_removes_its_flashcards(db, user):
    m = db.create_material(user['id'], 'text')
    db.create_flashcard(user['id'], 'Q', 'A', study_material_id=m['id'])
    db.create_flashcard(user['id'], 'Other', 'A')
    db.delete_material(user['id'], m['id'])
    assert [c['front'] for c in db.list_flashcards(user['id'])] == ['Other']


@pytest.mark.unit
def test_flashcards_are_scoped_to_owner(db, user, other_user):
    card = db.create_flashcard(other_user['id'], 'Q', 'A')
    assert db.get_flashcard(user['id'], card['id']) is None
    assert db.set_mastered(user['id'], card['id'], True) is False
    assert db.update_flashcard(user['id'], card['id'], front='x') is None
    assert db.delete_flashcard(user['id'], card['id']) is False


@pytest.mark.unit
def test_init_schema_reset_drops_data(db, user):
    db.create_material(user['id'], 'text')
    db.init_schema(reset=True)
    assert db.get_user(user['id']) is None


@pytest.mark.unit
def test_health_check(db, tmp_path):
    assert db.health_check() == 'ok'
    broken = Database(str(tmp_path / 'missing-dir' / 'x.db'))
    assert broken.health_check().startswith('error')


@pytest.mark.unit
def test_sql_errors_become_storage_errors(tmp_path):
    fresh = Database(str(tmp_path / 'no_schema.db'))
    with pytest.raises(StorageError):
        fresh.list_materials('u1')
