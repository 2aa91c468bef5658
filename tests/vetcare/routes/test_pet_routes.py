from vetcare.models import Pet

PET = {'name': 'Rex', 'species': 'dog', 'breed': 'Labrador', 'age': 4, 'weight': 21.5, 'gender': 'male'}


def test_owner_manages_own_pets(client, db, make_user, login) -> None:
    owner = make_user()
    headers = login(owner)

    created = client.post('/pets', json=PET, headers=headers)
    assert created.status_code == 201
    pet_id = created.json()['id']

    updated = client.put(f'/pets/{pet_id}', json={**PET, 'age': 5, 'medical_notes': 'Allergic to chicken'}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()['age'] == 5

    assert [pet['id'] for pet in client.get('/pets', headers=headers).json()] == [pet_id]

    assert client.delete(f'/pets/{pet_id}', headers=headers).status_code == 204
    assert client.get('/pets', headers=headers).json() == []
    assert client.get(f'/pets/{pet_id}', headers=headers).status_code == 404

    db.expire_all()
    soft_deleted = db.get(Pet, pet_id)
    assert soft_deleted is not None
    assert soft_deleted.deleted_at is not None


def test_pet_records_are_private_to_their_owner(client, make_user, make_pet, login) -> None:
    owner = make_user()
    stranger = make_user()
    admin = make_user(role='admin')
    pet = make_pet(owner)

    stranger_headers = login(stranger)
    assert client.get(f'/pets/{pet.id}', headers=stranger_headers).status_code == 403
    assert client.put(f'/pets/{pet.id}', json=PET, headers=stranger_headers).status_code == 403
    assert client.delete(f'/pets/{pet.id}', headers=stranger_headers).status_code == 403
    assert client.get(f'/pets/{pet.id}', headers=login(admin)).status_code == 200


def test_pet_validation_rejects_unknown_species_and_negative_values(client, make_user, login) -> None:
    headers = login(make_user())

    assert client.post('/pets', json={**PET, 'species': 'dragon'}, headers=headers).status_code == 422
    assert client.post('/pets', json={**PET, 'age': -1}, headers=headers).status_code == 422
    assert client.post('/pets', json={**PET, 'gender': 'unknown'}, headers=headers).status_code == 422


def test_veterinarians_cannot_register_pets(client, make_user, login) -> None:
    headers = login(make_user(role='veterinarian'))

    assert client.post('/pets', json=PET, headers=headers).status_code == 403
