"""NiceGUI chat interface rendering the streamed reply as it arrives."""

from nicegui import ui

from ragchat.models.schemas import ChatMessage, Role
from ragchat.ui.client import ChatClient, ChatSession, TransportError

CUSTOM_CSS = """
<style>
    body { background: #f5f5f5; }
    .message-user { background: #4f46e5; color: white; border-radius: 18px 18px 4px 18px; }
    .message-assistant { background: #f3f4f6; color: #1f2937; border-radius: 18px 18px 18px 4px; }
</style>
"""


@ui.page("/")
def chat_page() -> None:
    """Main chat page."""
    ui.add_head_html(CUSTOM_CSS)
    session = ChatSession()
    client = ChatClient()

    scroll_area: ui.scroll_area
    messages_container: ui.column
    input_field: ui.textarea
    send_btn: ui.button

    def render_message(msg: ChatMessage) -> ui.markdown:
        is_user = msg.role is Role.USER
        align = "justify-end" if is_user else "justify-start"
        bubble = "message-user" if is_user else "message-assistant"
        with ui.row().classes(f"w-full {align}"):
            with ui.element("div").classes(f"px-4 py-3 max-w-[75%] {bubble}"):
                return ui.markdown(msg.content or "…").classes("text-sm")

    def refresh_messages() -> ui.markdown | None:
        messages_container.clear()
        last = None
        with messages_container:
            for msg in session.messages:
                last = render_message(msg)
        scroll_area.scroll_to(percent=1)
        return last

    async def send_message() -> None:
        text = input_field.value.strip()
        if not text or session.is_streaming:
            return

        input_field.value = ""
        session.is_streaming = True
        send_btn.disable()
        send_btn.set_text("Sending...")

        outbound = session.begin_turn(text)
        reply_label = refresh_messages()

        def on_text(increment: str) -> None:
            session.append_to_reply(increment)
            reply_label.set_content(session.messages[-1].content)
            scroll_area.scroll_to(percent=1)

        try:
            await client.stream_reply(outbound, on_text)
        except TransportError as e:
            session.fail_turn()
            refresh_messages()
            ui.notify(str(e), type="negative")
        finally:
            session.is_streaming = False
            send_btn.set_text("Send")
            send_btn.enable()

    def new_chat() -> None:
        session.reset()
        refresh_messages()

    with ui.column().classes("w-full max-w-2xl mx-auto p-4 gap-3").style("height: 95vh"):
        with ui.row().classes("w-full items-center justify-between"):
            ui.label("Stock Market Assistant").classes("text-lg font-semibold")
            ui.button(icon="add", on_click=new_chat).props("flat round")

        with ui.scroll_area().classes("flex-grow w-full border rounded-lg bg-white") as scroll_area:
            messages_container = ui.column().classes("w-full p-4 gap-3")
            refresh_messages()

        with ui.row().classes("w-full gap-2 items-end"):
            input_field = (
                ui.textarea(placeholder="Message")
                .props("autogrow outlined dense rows=1")
                .classes("flex-grow")
                .on("keydown.enter.prevent", send_message)
            )
            send_btn = ui.button("Send", on_click=send_message).props("unelevated")


def main() -> None:
    ui.run(title="ragchat", port=8080, reload=False)


if __name__ == "__main__":
    main()
