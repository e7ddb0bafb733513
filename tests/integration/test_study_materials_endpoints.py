import pytest


@pytest.mark.integration
def test_create_and_get_material(client):
    r = client.post('/api/study-materials', json={'title': 'Biology', 'content': 'Cells divide.'})
    assert r.status_code == 201
    material = r.json()['material']
    assert material['title'] == 'Biology'
    assert material['keywords'] is None

    r = client.get(f"/api/study-materials/{material['id']}")
    assert r.status_code == 200
    assert r.json()['material']['content'] == 'Cells divide.'


@pytest.mark.integration
def test_create_material_blank_content(client):
    assert client.post('/api/study-materials', json={'content': '   '}).status_code == 400
    assert client.post('/api/study-materials', json={'content': ''}).status_code == 422


@pytest.mark.integration
def test_list_materials_newest_first(client):
    client.post('/api/study-materials', json={'content': 'first'})
    client.post('/api/study-materials', json={'content': 'second'})
    r = client.get('/api/study-materials')
    assert [m['content'] for m in r.json()['materials']] == ['second', 'first']


@pytest.mark.integration
def test_update_material(client):
    material = client.post('/api/study-materials', json={'title': 'Old', 'content': 'text'}).json()['material']
    body = {'title': 'New', 'keywords': [{'keyword': 'text', 'detail': 'words'}]}
    r = client.put(f"/api/study-materials/{material['id']}", json=body)
    assert r.status_code == 200
    updated = r.json()['material']
    assert updated['title'] == 'New'
    assert updated['content'] == 'text'
    assert updated['keywords'] == [{'keyword': 'text', 'detail': 'words'}]


@pytest.mark.integration
def test_delete_material(client):
    material = client.post('/api/study-materials', json={'content': 'text'}).json()['material']
    r = client.delete(f"/api/study-materials/{material['id']}")
    assert r.status_code == 200
    assert r.json()['success'] is True
    assert client.get(f"/api/study-materials/{material['id']}").status_code == 404
    assert client.delete(f"/api/study-materials/{material['id']}").status_code == 404


@pytest.mark.integration
def test_other_users_material_is_hidden(client, db, other_user):
    material = db.create_material(other_user['id'], 'private notes')
    r = client.get(f"/api/study-materials/{material['id']}")
    assert r.status_code == 404
    assert r.json()['error'] == 'Study material not found'
    assert client.put(f"/api/study-materials/{material['id']}", json={'title': 'x'}).status_code == 404
    assert client.delete(f"/api/study-materials/{material['id']}").status_code == 404
