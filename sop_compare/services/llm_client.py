"""
LLM client for document comparison and chat using the OpenAI API.

Wraps the two remote collaborators the pipeline needs: the Files API (PDF
upload and status lookup) and Chat Completions (sessions that send file
references and text in one turn).
"""
import os
import logging
from typing import Any, Dict, List, Optional
import openai
from openai import OpenAI

from sop_compare.models import FileState, RemoteFile

logger = logging.getLogger(__name__)

# Initialize OpenAI client
client: Optional[OpenAI] = None

DEFAULT_ACKNOWLEDGEMENT = "I understand. I'll help analyze documents according to these guidelines."

# Defaults for conversational requests
CHAT_GENERATION_CONFIG = {
    'temperature': 0.2,
    'top_p': 0.8,
    'max_tokens': 8192,
}


def _get_client() -> OpenAI:
    """Get or initialize OpenAI client."""
    global client
    if client is None:
        api_key = os.getenv('OPENAI_API_KEY')
        if not api_key:
            raise ValueError("OPENAI_API_KEY environment variable not set")

        try:
            client = OpenAI(api_key=api_key)
            logger.info("OpenAI client initialized successfully")
        except Exception as e:
            logger.error(f"Failed to create OpenAI client: {type(e).__name__} - {str(e)}")
            raise
    return client


def _get_model() -> str:
    return os.getenv('OPENAI_MODEL', 'gpt-4o-mini')


def _to_remote_file(file_object: Any, display_name: Optional[str] = None) -> RemoteFile:
    """Convert an OpenAI FileObject into a RemoteFile handle."""
    return RemoteFile(
        name=file_object.id,
        display_name=display_name or getattr(file_object, 'filename', None) or file_object.id,
        state=FileState.from_remote(getattr(file_object, 'status', None)),
    )


def upload_file(path: str, mime_type: str, display_name: str) -> RemoteFile:
    """
    Upload a local file to the OpenAI Files API.

    Args:
        path: Resolved path of the file on disk.
        mime_type: MIME type sent with the upload.
        display_name: Filename shown on the remote side.

    Returns:
        RemoteFile handle for the uploaded file.
    """
    api = _get_client()
    with open(path, 'rb') as fh:
        file_object = api.files.create(
            file=(display_name, fh, mime_type),
            purpose='user_data'
        )

    remote = _to_remote_file(file_object, display_name)
    logger.info(f"Uploaded file {remote.display_name} as: {remote.name} ({remote.state.value})")
    return remote


def get_file(name: str) -> RemoteFile:
    """Fetch the current remote state of an uploaded file."""
    file_object = _get_client().files.retrieve(name)
    return _to_remote_file(file_object)


def _to_content_parts(parts: List[Dict[str, str]]) -> List[Dict[str, Any]]:
    """
    Convert ordered message parts into OpenAI content parts.

    Each part is either ``{"file_id": ...}`` or ``{"text": ...}``.
    """
    content = []
    for part in parts:
        if 'file_id' in part:
            content.append({'type': 'file', 'file': {'file_id': part['file_id']}})
        elif 'text' in part:
            content.append({'type': 'text', 'text': part['text']})
        else:
            raise ValueError(f"Unsupported message part: {sorted(part.keys())}")
    return content


def _call_openai(messages: List[Dict[str, Any]], model: str, generation_config: Dict[str, Any]) -> str:
    """
    Call OpenAI Chat Completions once.

    Generation requests are billable and are not retried here; a failure is
    reported to the caller.

    Args:
        messages: Full message list for the request.
        model: The model to use.
        generation_config: temperature, top_p, max_tokens and an optional
            response_format.

    Returns:
        Raw response text.

    Raises:
        RuntimeError: On any API failure.
    """
    try:
        api = _get_client()

        request_args = {
            'model': model,
            'messages': messages,
            'timeout': float(os.getenv('OPENAI_TIMEOUT', '300')),
        }
        request_args.update(generation_config)

        response = api.chat.completions.create(**request_args)

        return response.choices[0].message.content or ""

    except openai.APITimeoutError:
        logger.error("OpenAI API request timed out")
        raise RuntimeError("AI analysis request timed out")
    except openai.APIError as e:
        error_type = type(e).__name__
        logger.error(f"OpenAI API call failed: {error_type} - {e}")
        raise RuntimeError(f"AI analysis service error: {error_type} - {e}")


class ChatSession:
    """
    A conversation with the model.

    The system prompt and an optional primed assistant acknowledgement open the
    history; every ``send`` appends the user turn and the reply.
    """

    def __init__(self, system_prompt: Optional[str] = None, acknowledgement: Optional[str] = None,
                 model: Optional[str] = None):
        self.model = model or _get_model()
        self.history: List[Dict[str, Any]] = []
        if system_prompt:
            self.history.append({'role': 'system', 'content': system_prompt})
            if acknowledgement:
                self.history.append({'role': 'assistant', 'content': acknowledgement})

    def send(self, parts, generation_config: Optional[Dict[str, Any]] = None) -> str:
        """
        Send one user turn.

        Args:
            parts: Plain text, or an ordered list of file/text parts.
            generation_config: Overrides for CHAT_GENERATION_CONFIG.

        Returns:
            The model's text reply.
        """
        if isinstance(parts, str):
            parts = [{'text': parts}]

        config = dict(CHAT_GENERATION_CONFIG)
        config.update(generation_config or {})

        user_message = {'role': 'user', 'content': _to_content_parts(parts)}
        reply = _call_openai(self.history + [user_message], self.model, config)

        self.history.append(user_message)
        self.history.append({'role': 'assistant', 'content': reply})
        return reply


def start_session(system_prompt: Optional[str] = None,
                  acknowledgement: Optional[str] = DEFAULT_ACKNOWLEDGEMENT) -> ChatSession:
    """Create a chat session primed with a system prompt."""
    return ChatSession(system_prompt, acknowledgement)
