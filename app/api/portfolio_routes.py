"""
Portfolio Image Routes Blueprint

Each signed-in user manages their own gallery of up to 15 images.
"""

from flask import Blueprint, request, jsonify
import logging

from auth import login_required
from app.utils.helpers import get_json_body, get_extension, get_current_user
from database.connection import get_db_session
from services.portfolio_service import PortfolioImageService
from services.rate_limiter import upload_limit

logger = logging.getLogger(__name__)

portfolio_bp = Blueprint('portfolio', __name__, url_prefix='/api/portfolio')
upload_limit(portfolio_bp)


def image_service(db) -> PortfolioImageService:
    return PortfolioImageService(db, get_current_user(), storage=get_extension('storage'))


@portfolio_bp.route('', methods=['GET'])
@login_required
def list_images():
    with get_db_session() as db:
        result = image_service(db).list_images()
    return jsonify({'success': True, **result})


@portfolio_bp.route('', methods=['POST'])
@login_required
def add_image():
    with get_db_session() as db:
        image = image_service(db).add_image(get_json_body())
    return jsonify({'success': True, 'image': image}), 201


@portfolio_bp.route('', methods=['DELETE'])
@login_required
def delete_image():
    """Delete by ?key= / ?id= or the same fields in a JSON body"""
    data = get_json_body()
    key = request.args.get('key') or data.get('key')
    image_id = request.args.get('id') or data.get('id')
    with get_db_session() as db:
        deleted = image_service(db).delete_image(key=key, image_id=image_id)
    return jsonify({'success': True, 'message': 'Image deleted successfully', 'deletedImage': deleted})


@portfolio_bp.route('', methods=['PATCH'])
@login_required
def update_image():
    with get_db_session() as db:
        image = image_service(db).update_image(get_json_body())
    return jsonify({'success': True, 'image': image})
