import os
from uuid import uuid4

import requests
import streamlit as st

API_URL = os.getenv("API_URL", "http://127.0.0.1:3000/api/chat")
SYSTEM_CONTEXT = os.getenv(
    "UI_SYSTEM_CONTEXT",
    "You are a helpful assistant for students looking for higher education "
    "institutions in the Philippines.",
)


def _new_chat() -> dict:
    chat_id = str(uuid4())[:8]
    return {"id": chat_id, "title": "New Chat", "messages": []}


def _init_state() -> None:
    if "chats" not in st.session_state:
        first = _new_chat()
        st.session_state.chats = [first]
        st.session_state.active_chat_id = first["id"]


def _active_chat() -> dict:
    active_id = st.session_state.active_chat_id
    for entry in st.session_state.chats:
        if entry["id"] == active_id:
            return entry
    fallback = st.session_state.chats[0]
    st.session_state.active_chat_id = fallback["id"]
    return fallback


def chat_title_from_prompt(prompt: str) -> str:
    text = " ".join(prompt.strip().split())
    if not text:
        return "New Chat"
    return text[:45] + ("..." if len(text) > 45 else "")


def to_chat_history(messages: list[dict]) -> list[dict]:
    """Convert UI messages into the chatHistory shape the API expects."""
    return [
        {
            "role": "user" if message.get("role") == "user" else "model",
            "parts": [{"text": message.get("content", "")}],
        }
        for message in messages
    ]


def _render_sidebar() -> None:
    with st.sidebar:
        st.header("Welcome")
        st.write("Ask about CHED-listed colleges and universities by name, city, or region.")

        if st.button("New Chat", use_container_width=True):
            new_chat = _new_chat()
            st.session_state.chats.insert(0, new_chat)
            st.session_state.active_chat_id = new_chat["id"]
            st.rerun()

        st.subheader("Your Chats")
        for entry in st.session_state.chats:
            active = entry["id"] == st.session_state.active_chat_id
            label = entry.get("title", "New Chat")
            prefix = "-> " if active else ""
            if st.button(
                f"{prefix}{label}",
                key=f"chat_{entry['id']}",
                use_container_width=True,
            ):
                st.session_state.active_chat_id = entry["id"]
                st.rerun()


def _request_answer(messages: list[dict]) -> str:
    response = requests.post(
        API_URL,
        json={"chatHistory": to_chat_history(messages), "systemContext": SYSTEM_CONTEXT},
        timeout=120,
    )
    if response.status_code >= 400:
        try:
            return str(response.json().get("error", "Request failed."))
        except ValueError:
            return "Sorry, I couldn't generate an answer right now. Please try again."
    return response.json().get("text", "")


def _render_assistant_reply(messages: list[dict]) -> str:
    with st.chat_message("assistant"):
        with st.spinner("Thinking..."):
            try:
                assistant_text = _request_answer(messages)
                st.write(assistant_text)
            except requests.RequestException:
                assistant_text = "Service is temporarily unavailable. Please try again."
                st.error(assistant_text)
    return assistant_text


def main() -> None:
    _init_state()
    _render_sidebar()
    active_chat = _active_chat()

    st.title("CHED Institutions Assistant")
    st.caption("Answers about higher education institutions in the CHED list.")

    for message in active_chat["messages"]:
        with st.chat_message(message["role"]):
            st.write(message["content"])

    prompt = st.chat_input("Ask about a school, city, or region")
    if not prompt:
        return
    prompt = prompt.strip()
    if not prompt:
        st.warning("Please enter a non-empty question.")
        return

    if active_chat["title"] == "New Chat":
        active_chat["title"] = chat_title_from_prompt(prompt)

    active_chat["messages"].append({"role": "user", "content": prompt})
    with st.chat_message("user"):
        st.write(prompt)

    assistant_text = _render_assistant_reply(active_chat["messages"])
    active_chat["messages"].append({"role": "assistant", "content": assistant_text})


if __name__ == "__main__":
    main()
