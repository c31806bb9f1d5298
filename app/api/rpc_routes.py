"""
RPC Routes Blueprint

Single calls:
    GET  /api/rpc/<router>.<procedure>?input=<json>   (queries)
    POST /api/rpc/<router>.<procedure>  body = input  (queries and mutations)

Batch:
    POST /api/rpc?batch=1  body = [{"path": ..., "input": ...}, ...]

Every call runs in its own unit of work. In a batch, a failing call rolls
back only itself and is reported in place, unexpected errors included as a
sanitized 500; the others still commit.
"""

import json

from flask import Blueprint, request, jsonify, current_app
import logging

from app.rpc import registry, Context
from app.utils.helpers import get_current_user, get_tasks
from database.connection import get_db_session
from services.background import BackgroundTasks
from services.csrf import csrf
from services.errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

rpc_bp = Blueprint('rpc', __name__, url_prefix='/api/rpc')
csrf.exempt(rpc_bp)

MAX_BATCH_SIZE = 20


def read_input():
    if request.method == 'GET':
        raw = request.args.get('input')
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            raise ValidationError("input must be valid JSON")
    if not request.get_data():
        return None
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("Request body must be valid JSON")
    return data


def execute(path, input, method, tasks):
    with get_db_session() as db:
        ctx = Context(db, get_current_user(), tasks, current_app.extensions)
        return registry.call(path, ctx, input, method)


@rpc_bp.route('/<path>', methods=['GET', 'POST'])
def call_procedure(path):
    result = execute(path, read_input(), request.method, get_tasks())
    return jsonify({'success': True, 'data': result})


@rpc_bp.route('', methods=['POST'])
def call_batch():
    calls = request.get_json(silent=True)
    if not isinstance(calls, list) or not calls:
        raise ValidationError("Batch body must be a non-empty JSON list")
    if len(calls) > MAX_BATCH_SIZE:
        raise ValidationError(f"At most {MAX_BATCH_SIZE} calls per batch")

    executor = current_app.extensions.get('executor')
    results = []
    for call in calls:
        if not isinstance(call, dict) or not call.get('path'):
            results.append({'success': False, 'error': 'Each call needs a path', 'status': 400})
            continue

        tasks = BackgroundTasks(executor)
        try:
            data = execute(call['path'], call.get('input'), 'POST', tasks)
        except ServiceError as e:
            tasks.discard()
            logger.info(f"Batched call {call['path']} failed with {e.status_code}: {e.message}")
            results.append({**e.to_dict(), 'status': e.status_code})
            continue
        except Exception as e:
            tasks.discard()
            logger.error(f"Batched call {call['path']} crashed: {e}", exc_info=True)
            results.append({'success': False, 'error': 'Internal Server Error', 'status': 500})
            continue
        tasks.run()
        results.append({'success': True, 'data': data})

    return jsonify(results)
