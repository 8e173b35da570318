"""NiceGUI chat interface over the chat engine."""

import logging
from collections.abc import Awaitable

from nicegui import app, ui

from compliance_chat.client.config import get_client_config
from compliance_chat.client.sessions import get_session_store
from compliance_chat.client.transport import get_api_client
from compliance_chat.conversation.engine import ChatEngine
from compliance_chat.conversation.state import ConversationState
from compliance_chat.exceptions import ChatClientError
from compliance_chat.models.schemas import Message, Role
from compliance_chat.storage.kv_store import JsonFileStore
from compliance_chat.storage.reconciler import HistoryReconciler

logger = logging.getLogger(__name__)

QUICK_QUESTIONS = [
    "Summarize this document",
    "What are the key points?",
    "What are the compliance requirements?",
    "When does this take effect?",
]

CUSTOM_CSS = """
<style>
    .message-user { background: #1F4A75; color: white; border-radius: 18px 18px 4px 18px; }
    .message-bot { background: #f3f4f6; color: #1f2937; border-radius: 18px 18px 18px 4px; }
    .message-error { background: #fef2f2; color: #991b1b; border-radius: 18px 18px 18px 4px; }
    .message-bot p, .message-error p { margin: 0.25rem 0; }
</style>
"""

# Module-level singleton instance
_reconciler: HistoryReconciler | None = None


def get_reconciler() -> HistoryReconciler:
    """Get or create the cache shared by all pages of this process."""
    global _reconciler
    if _reconciler is None:
        config = get_client_config()
        _reconciler = HistoryReconciler(
            JsonFileStore(config.cache_path),
            history_limit=config.history_limit,
            preview_length=config.preview_length,
        )
    return _reconciler


def render_chat(document_id: str | None) -> None:
    """Build the chat view for one document scope (None for general chat)."""
    ui.add_head_html(CUSTOM_CSS)

    messages_container: ui.column
    sessions_container: ui.column
    input_field: ui.textarea
    send_btn: ui.button

    def on_change(state: ConversationState) -> None:
        refresh_messages(state)
        if state.is_sending:
            send_btn.disable()
        else:
            send_btn.enable()

    engine = ChatEngine(
        get_session_store(),
        get_reconciler(),
        document_id=document_id,
        idle_timeout=get_client_config().stream_idle_timeout,
        on_change=on_change,
    )

    def render_message(msg: Message) -> None:
        is_user = msg.role is Role.USER
        align = "justify-end" if is_user else "justify-start"
        if is_user:
            bubble = "message-user"
        elif msg.is_error:
            bubble = "message-error"
        else:
            bubble = "message-bot"

        with ui.row().classes(f"w-full {align}"):
            with ui.column().classes("max-w-[75%] gap-1"):
                with ui.element("div").classes(f"px-4 py-3 {bubble}"):
                    if msg.content:
                        ui.markdown(msg.content).classes("text-sm")
                    else:
                        ui.spinner("dots").classes("text-gray-400")
                for ref in msg.references:
                    label = ref.title or ref.file_name or ref.document_id
                    if ref.blob_url:
                        ui.link(label, ref.blob_url, new_tab=True).classes("text-xs")
                    else:
                        ui.label(label).classes("text-xs text-gray-500")
                ui.label(msg.timestamp.strftime("%I:%M %p")).classes(
                    f"text-[10px] text-gray-400 {'self-end' if is_user else 'self-start'}"
                )

    def refresh_messages(state: ConversationState) -> None:
        messages_container.clear()
        with messages_container:
            if not state.messages:
                with ui.column().classes("w-full h-64 items-center justify-center gap-3"):
                    ui.icon("forum").classes("text-5xl text-gray-300")
                    if document_id is None:
                        ui.label("Start a conversation").classes("text-lg text-gray-400")
                    else:
                        ui.label("Ask me anything about this document!").classes(
                            "text-lg text-gray-400"
                        )
                        for question in QUICK_QUESTIONS:
                            ui.button(question, on_click=lambda q=question: send_text(q)).props(
                                "flat no-caps"
                            )
            else:
                for msg in state.messages:
                    render_message(msg)

    def render_sessions() -> None:
        sessions_container.clear()
        with sessions_container:
            for session in engine.sessions:
                current = session.session_id == engine.state.session_id
                label = session.title or session.session_id[:8]
                with ui.row().classes("w-full items-center no-wrap"):
                    ui.button(
                        label,
                        on_click=lambda s=session.session_id: switch_to(s),
                    ).props(f"flat dense no-caps {'color=primary' if current else 'color=grey'}")
                    ui.button(
                        icon="delete",
                        on_click=lambda s=session.session_id: delete(s),
                    ).props("flat dense round size=sm color=grey")

    async def refresh_sessions() -> None:
        await engine.refresh_sessions()
        render_sessions()

    async def guarded(action: Awaitable[object]) -> None:
        try:
            await action
        except ChatClientError as e:
            logger.error(f"Chat action failed: {e}")
            ui.notify(str(e), type="negative")

    async def send_text(text: str) -> None:
        input_field.value = ""
        await guarded(engine.send(text))
        render_sessions()

    async def send_message() -> None:
        await send_text(input_field.value or "")

    async def new_chat() -> None:
        await guarded(engine.new_session())
        await refresh_sessions()

    async def switch_to(session_id: str) -> None:
        await guarded(engine.switch_session(session_id))
        await refresh_sessions()

    async def delete(session_id: str) -> None:
        await guarded(engine.delete_session(session_id))
        render_sessions()

    # === UI Layout ===
    with ui.row().classes("w-full h-screen no-wrap"):
        with ui.column().classes("w-64 h-full p-3 bg-gray-50 border-r"):
            ui.button("New chat", icon="add", on_click=new_chat).classes("w-full")
            ui.label("Recent chats").classes("text-xs text-gray-500 mt-2")
            sessions_container = ui.column().classes("w-full gap-1")

        with ui.column().classes("flex-grow h-full"):
            title = "Compliance Assistant" if document_id is None else f"Document {document_id}"
            ui.label(title).classes("text-lg font-semibold px-5 pt-4")
            with (
                ui.scroll_area().classes("flex-grow w-full"),
                ui.column().classes("w-full p-5"),
            ):
                messages_container = ui.column().classes("w-full gap-4")

            with ui.row().classes("w-full p-4 gap-3 items-end border-t"):
                input_field = (
                    ui.textarea(placeholder="Ask any questions...")
                    .props("autogrow outlined dense rows=1")
                    .classes("flex-grow")
                    .on("keydown.enter.prevent", send_message)
                )
                send_btn = ui.button(icon="send", on_click=send_message).props("round unelevated")

    async def start() -> None:
        await guarded(engine.open())
        refresh_messages(engine.state)
        await refresh_sessions()

    ui.context.client.on_disconnect(engine.cancel)
    ui.timer(0, start, once=True)


@ui.page("/")
def chat_page() -> None:
    """General (no-document) chat page."""
    render_chat(None)


@ui.page("/documents/{document_id}/chat")
def document_chat_page(document_id: str) -> None:
    """Chat page scoped to one document."""
    render_chat(document_id)


@app.on_shutdown
async def close_client() -> None:
    await get_api_client().aclose()
