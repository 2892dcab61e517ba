from flask import Blueprint, request, jsonify
import logging

from sop_compare.cache import comparison_cache
from sop_compare.models import ComparisonFailure
from sop_compare.services.comparison_orchestrator import compare_multiple_documents
from sop_compare.services.result_store import result_store

comparison_bp = Blueprint('comparison', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


def serialize_result(result):
    """JSON-ready form of a comparison result (item list or failure)."""
    if result is None:
        return []
    if isinstance(result, ComparisonFailure):
        return result.to_dict()
    return [item.to_dict() if hasattr(item, 'to_dict') else item for item in result]


@comparison_bp.route('/compare', methods=['POST'])
def compare():
    """Compare SOP documents with regulatory guidelines"""
    try:
        data = request.get_json(silent=True) or {}
        sop_paths = data.get('sopPaths') or []
        guideline_paths = data.get('guidelinePaths') or []
        user_id = request.cookies.get('userId')

        if not sop_paths or not guideline_paths:
            return jsonify({'error': 'Missing required paths'}), 400

        logger.info(f"API: Comparing {len(sop_paths)} SOPs with {len(guideline_paths)} guidelines")

        result = compare_multiple_documents(sop_paths, guideline_paths)
        payload = serialize_result(result)

        if user_id and not isinstance(result, ComparisonFailure):
            try:
                result_id = result_store.save(user_id, sop_paths, guideline_paths, payload)
                return jsonify({
                    'success': True,
                    'resultId': result_id,
                    'count': len(payload)
                })
            except Exception as e:
                # Results are still in the cache; return them directly
                logger.error(f"Failed to save comparison results: {e}")
                return jsonify(payload)

        return jsonify(payload)

    except Exception as e:
        logger.error(f"Comparison API error: {str(e)}")
        return jsonify({'error': str(e) or 'Unknown error during comparison'}), 500


@comparison_bp.route('/comparison-results', methods=['GET'])
def comparison_results():
    """Return a stored result by id, the user's latest result, or the cached one"""
    try:
        user_id = request.cookies.get('userId')
        result_id = request.args.get('id')

        if result_id:
            record = result_store.load_by_id(result_id)
            if not record:
                return jsonify({'error': 'Result not found'}), 404
            return jsonify(record['results'])

        if user_id:
            records = result_store.load_recent_by_user(user_id)
            if records:
                return jsonify(records[0]['results'])

        cached = comparison_cache.get()
        if cached is None:
            logger.info("API: No comparison results found, returning empty array")
        return jsonify(serialize_result(cached))

    except Exception as e:
        logger.error(f"Error getting comparison results: {str(e)}")
        return jsonify({'error': str(e)}), 500
