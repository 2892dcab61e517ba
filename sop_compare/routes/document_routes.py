from flask import Blueprint, request, jsonify
import logging

from sop_compare.services.document_library import DOCUMENT_TYPES, list_documents, save_document

document_bp = Blueprint('documents', __name__, url_prefix='/api')
logger = logging.getLogger(__name__)


@document_bp.route('/upload', methods=['POST'])
def upload():
    """Store an SOP or guideline PDF in the document library"""
    file = request.files.get('file')
    doc_type = request.form.get('type')

    if not file or file.filename == '':
        return jsonify({'error': 'No file provided'}), 400

    if doc_type not in DOCUMENT_TYPES:
        return jsonify({'error': 'Invalid file type'}), 400

    try:
        return jsonify(save_document(file.stream, file.filename, doc_type))
    except Exception as e:
        logger.error(f"Upload error: {str(e)}")
        return jsonify({'error': 'Upload failed', 'details': str(e)}), 500


@document_bp.route('/files', methods=['GET'])
def files():
    """List stored documents"""
    try:
        return jsonify({'files': list_documents()})
    except Exception as e:
        logger.error(f"Error getting files: {str(e)}")
        return jsonify({'error': 'Failed to get files'}), 500
