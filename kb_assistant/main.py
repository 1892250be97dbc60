"""Main Quart application for the knowledge base assistant."""
import logging

from pydantic import BaseModel, ValidationError
from quart import Quart, render_template, request, jsonify
from quart_cors import cors
import structlog

from kb_assistant import config
from kb_assistant.llm_client import extract_reply, llm_client
from kb_assistant.prompts import build_messages
from kb_assistant.rag.retriever import KnowledgeBase, format_reference
from kb_assistant.rag.watcher import KnowledgeWatcher

# Configure structured logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(message)s")

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()

# Initialize Quart app
app = Quart(
    __name__,
    template_folder=str(config.WEB_DIR / "templates"),
    static_folder=str(config.WEB_DIR / "static"),
)
app = cors(app, allow_origin="*")

knowledge_base = KnowledgeBase()
watcher = None


class ChatRequest(BaseModel):
    """Body of POST /api/chat."""

    message: str = ""


def _preview(text: str, limit: int = 200) -> str:
    return text[:limit] + "..." if len(text) > limit else text


@app.before_serving
async def startup():
    """Load knowledge before accepting requests; start without it on failure."""
    global watcher

    try:
        await knowledge_base.load()
    except Exception as e:
        logger.error(
            "knowledge_load_failed",
            error=str(e),
            error_type=type(e).__name__,
        )

    if config.WATCH_KNOWLEDGE:
        watcher = KnowledgeWatcher(knowledge_base)
        await watcher.start()

    logger.info(
        "server_ready",
        port=config.PORT,
        chunk_count=knowledge_base.chunk_count,
    )


@app.after_serving
async def shutdown():
    if watcher is not None:
        watcher.stop()


@app.route("/")
async def index():
    """Render the chat page."""
    return await render_template(
        "chat.html",
        static_version=config.STATIC_VERSION,
        assistant_name=config.ASSISTANT_NAME,
    )


@app.route("/api/chat", methods=["POST"])
async def chat():
    """Answer a question from the knowledge folder.

    Expects JSON body:
    {
        "message": "user message text"
    }

    Returns JSON:
    {
        "reply": "assistant response text",
        "sources": [...]  // retrieved passages, best first
    }
    """
    try:
        data = await request.get_json(silent=True)
        try:
            body = ChatRequest.model_validate(data or {})
        except ValidationError as e:
            logger.warning("invalid_chat_request", error=str(e))
            return jsonify({"error": "'message' must be a string"}), 400

        user_message = body.message.strip()

        if not user_message:
            return jsonify({"error": "Message cannot be empty"}), 400

        if len(user_message) > config.MAX_MESSAGE_CHARS:
            return jsonify({
                "error": f"Message too long (max {config.MAX_MESSAGE_CHARS} characters)"
            }), 400

        logger.info(
            "chat_request_received",
            message_length=len(user_message),
            user_message_preview=user_message[:100],
        )

        hits = await knowledge_base.search(user_message)
        reference = format_reference(hits)
        messages = build_messages(user_message, reference)

        response = await llm_client.create_response(messages)
        reply = extract_reply(response) or config.FALLBACK_REPLY

        logger.info(
            "chat_response_sent",
            response_length=len(reply),
            num_sources=len(hits),
        )

        return jsonify({
            "reply": reply,
            "sources": [
                {
                    "source": hit.source,
                    "content_preview": _preview(hit.content),
                    "relevance": round(hit.score, 3),
                }
                for hit in hits
            ],
        })

    except Exception as e:
        logger.error("chat_endpoint_error", error=str(e), error_type=type(e).__name__)
        return jsonify({"error": str(e) or "Server error"}), 500


@app.route("/debug")
async def debug():
    """Show the knowledge folder contents and the loaded chunk count."""
    try:
        return jsonify(knowledge_base.debug_info())
    except Exception as e:
        logger.error("debug_endpoint_error", error=str(e))
        return jsonify({"error": str(e)}), 500


@app.route("/reload", methods=["POST"])
async def reload_knowledge():
    """Rebuild the knowledge base from disk."""
    try:
        await knowledge_base.load()
        return jsonify({"ok": True, "chunkCount": knowledge_base.chunk_count})
    except Exception as e:
        logger.error("reload_failed", error=str(e), error_type=type(e).__name__)
        return jsonify({"error": str(e)}), 500


@app.route("/health/ready")
async def health_ready():
    """Readiness probe - check if app can serve requests.

    Checks:
    - An API key is configured
    - The model service is reachable
    """
    checks = {
        "status": "healthy",
        "api_key": llm_client.is_configured,
        "model_service": False,
        "chunk_count": knowledge_base.chunk_count,
    }

    if not checks["api_key"]:
        checks["status"] = "unhealthy"
        checks["error"] = "OPENAI_API_KEY is not set"
        return jsonify(checks), 503

    try:
        await llm_client.list_models()
        checks["model_service"] = True
        return jsonify(checks), 200

    except Exception as e:
        logger.error("health_check_failed", error=str(e))
        checks["status"] = "unhealthy"
        checks["error"] = str(e)
        return jsonify(checks), 503


@app.route("/health/live")
async def health_live():
    """Liveness probe - check if app is running."""
    return jsonify({"status": "alive"}), 200


@app.errorhandler(404)
async def not_found(error):
    """Handle 404 errors."""
    return jsonify({"error": "Not found"}), 404


@app.errorhandler(500)
async def internal_error(error):
    """Handle 500 errors."""
    logger.error("internal_server_error", error=str(error))
    return jsonify({"error": "Internal server error"}), 500


def run():
    app.run(host=config.HOST, port=config.PORT)


if __name__ == "__main__":
    # For development - use hypercorn in production
    run()
