"""
Tests for portfolio image galleries
"""
import pytest

from database.connection import get_db_session
from database.models import PortfolioImage
from services.errors import NotFoundError, ValidationError
from services.portfolio_service import MAX_PORTFOLIO_IMAGES, PortfolioImageService


def image_payload(n):
    return {
        'url': f"https://cdn.test/portfolio/{n}.png",
        'key': f"portfolio/{n}.png",
        'name': f"Shot {n}",
        'fileName': f"{n}.png",
        'size': 1000,
        'type': 'image/png',
    }


@pytest.mark.integration
class TestPortfolioImageService:
    """Tests for gallery rules"""

    def test_cap_allows_fifteen_then_rejects(self, app, client_user, as_user):
        """Test the fifteenth image is accepted and the sixteenth refused"""
        with get_db_session() as db:
            service = PortfolioImageService(db, as_user(client_user))
            for n in range(MAX_PORTFOLIO_IMAGES):
                service.add_image(image_payload(n))

        with pytest.raises(ValidationError, match='Maximum 15 images allowed'):
            with get_db_session() as db:
                PortfolioImageService(db, as_user(client_user)).add_image(image_payload(99))

        with get_db_session() as db:
            listing = PortfolioImageService(db, as_user(client_user)).list_images()
        assert listing['totalImages'] == 15
        assert listing['totalSize'] == 15000

    def test_cap_is_per_user(self, app, client_user, make_user, as_user):
        """Test another user's images do not count"""
        other = make_user(email='other@example.com')
        with get_db_session() as db:
            service = PortfolioImageService(db, as_user(other))
            for n in range(MAX_PORTFOLIO_IMAGES):
                service.add_image(image_payload(n))
        with get_db_session() as db:
            image = PortfolioImageService(db, as_user(client_user)).add_image(image_payload(1))
        assert image['name'] == 'Shot 1'

    def test_add_requires_fields(self, app, client_user, as_user):
        """Test url, key and name are required"""
        with pytest.raises(ValidationError, match='url, key, name'):
            with get_db_session() as db:
                PortfolioImageService(db, as_user(client_user)).add_image({'url': 'https://cdn.test/x.png'})

    def test_delete_survives_storage_failure(self, app, client_user, as_user, storage):
        """Test the row goes even when the object delete fails"""
        storage.fail_deletes = True
        with get_db_session() as db:
            image = PortfolioImageService(db, as_user(client_user), storage).add_image(image_payload(1))
        with get_db_session() as db:
            deleted = PortfolioImageService(db, as_user(client_user), storage).delete_image(image_id=image['id'])
        assert deleted['key'] == 'portfolio/1.png'
        with get_db_session() as db:
            assert db.query(PortfolioImage).count() == 0

    def test_delete_other_users_image(self, app, client_user, make_user, as_user):
        """Test users cannot delete images they do not own"""
        other = make_user(email='other@example.com')
        with get_db_session() as db:
            PortfolioImageService(db, as_user(other)).add_image(image_payload(1))
        with pytest.raises(NotFoundError):
            with get_db_session() as db:
                PortfolioImageService(db, as_user(client_user)).delete_image(key='portfolio/1.png')

    def test_update_name_and_order(self, app, client_user, as_user):
        """Test renaming and reordering"""
        with get_db_session() as db:
            image = PortfolioImageService(db, as_user(client_user)).add_image(image_payload(1))
        with get_db_session() as db:
            updated = PortfolioImageService(db, as_user(client_user)).update_image(
                {'id': image['id'], 'name': '  Homepage  ', 'order': '3'})
        assert updated['name'] == 'Homepage'
        assert updated['order'] == 3

    def test_update_rejects_empty_name(self, app, client_user, as_user):
        """Test blank names are refused"""
        with get_db_session() as db:
            image = PortfolioImageService(db, as_user(client_user)).add_image(image_payload(1))
        with pytest.raises(ValidationError, match='Name cannot be empty'):
            with get_db_session() as db:
                PortfolioImageService(db, as_user(client_user)).update_image({'id': image['id'], 'name': ' '})


@pytest.mark.integration
class TestPortfolioRoutes:
    """Tests for /api/portfolio"""

    def test_gallery_crud(self, client, client_user, login, storage):
        """Test add, list, rename and delete over HTTP"""
        login(client, client_user)

        response = client.post('/api/portfolio', json=image_payload(1))
        assert response.status_code == 201
        image_id = response.get_json()['image']['id']

        listing = client.get('/api/portfolio').get_json()
        assert listing['totalImages'] == 1

        response = client.patch('/api/portfolio', json={'id': image_id, 'name': 'Landing page'})
        assert response.get_json()['image']['name'] == 'Landing page'

        response = client.delete('/api/portfolio?key=portfolio/1.png')
        assert response.status_code == 200
        assert response.get_json()['deletedImage']['id'] == image_id
        assert storage.deleted == ['portfolio/1.png']

    def test_gallery_requires_login(self, client):
        """Test anonymous access is 401"""
        assert client.get('/api/portfolio').status_code == 401

    def test_delete_without_key_or_id(self, client, client_user, login):
        """Test delete needs a key or id"""
        login(client, client_user)
        assert client.delete('/api/portfolio').status_code == 400
