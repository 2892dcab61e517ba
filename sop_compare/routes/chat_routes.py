from flask import Blueprint, request, jsonify
import logging
import time

from sop_compare.services.conversation_manager import conversation_manager

chat_bp = Blueprint('chat', __name__, url_prefix='/api/chat')
logger = logging.getLogger(__name__)


@chat_bp.route('', methods=['POST'])
def send_message():
    """Answer a chat message, optionally about mentioned documents"""
    try:
        data = request.get_json(silent=True) or {}
        message = data.get('message')
        mentions = data.get('mentions') or []

        if not message or not isinstance(message, str):
            return jsonify({'error': 'Message is required and must be a string'}), 400

        logger.info(f"Processing chat message with {len(mentions)} document references")
        return jsonify(conversation_manager.process(message, mentions))

    except Exception as e:
        logger.error(f"Error in chat API: {str(e)}")
        now_ms = int(time.time() * 1000)
        return jsonify({
            'error': str(e),
            'id': str(now_ms),
            'content': 'I encountered an error processing your request. Please try again.',
            'timestamp': now_ms
        }), 500


@chat_bp.route('', methods=['GET'])
def get_history():
    """Return remembered conversation messages"""
    return jsonify({'history': conversation_manager.history()})


@chat_bp.route('', methods=['DELETE'])
def clear_history():
    """Forget the conversation"""
    conversation_manager.clear()
    return jsonify({'success': True, 'message': 'Conversation history cleared'})
