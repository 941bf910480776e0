"""Tests for the history store against a temporary SQLite database."""

import asyncio

import pytest

from chatrelay.database import create_engine, create_sessionmaker, init_db
from chatrelay.models.message import ChatMessage
from chatrelay.services.history import HistoryStore
from chatrelay.utils.exceptions import DuplicateMessageError, StoreError


def run_with_store(tmp_path, scenario):
    async def run():
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'nested' / 'chat.db'}")
        try:
            await init_db(engine)
            return await scenario(HistoryStore(create_sessionmaker(engine)))
        finally:
            await engine.dispose()

    return asyncio.run(run())


def test_append_and_list_keep_insertion_order(tmp_path):
    async def scenario(store):
        for i in range(5):
            await store.append(ChatMessage(id=f"m{i}", content=f"text {i}", type="user"))
        return await store.list_messages()

    messages = run_with_store(tmp_path, scenario)
    assert [m.id for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
    assert messages[2] == ChatMessage(id="m2", content="text 2", type="user")


def test_duplicate_id_raises(tmp_path):
    async def scenario(store):
        await store.append(ChatMessage(id="a", content="x", type="user"))
        await store.append(ChatMessage(id="a", content="y", type="assistant"))

    with pytest.raises(DuplicateMessageError) as exc_info:
        run_with_store(tmp_path, scenario)
    assert exc_info.value.status_code == 409
    assert isinstance(exc_info.value, StoreError)


def test_missing_table_is_store_error(tmp_path):
    async def run():
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        try:
            await HistoryStore(create_sessionmaker(engine)).list_messages()
        finally:
            await engine.dispose()

    with pytest.raises(StoreError) as exc_info:
        asyncio.run(run())
    assert exc_info.value.status_code == 500


def test_append_all_is_one_transaction(tmp_path):
    async def scenario(store):
        await store.append(ChatMessage(id="taken", content="x", type="user"))
        with pytest.raises(DuplicateMessageError):
            await store.append_all(
                [
                    ChatMessage(id="fresh", content="question", type="user"),
                    ChatMessage(id="taken", content="answer", type="assistant"),
                ]
            )
        return await store.list_messages()

    messages = run_with_store(tmp_path, scenario)
    assert [m.id for m in messages] == ["taken"]


def test_append_all_keeps_given_order(tmp_path):
    async def scenario(store):
        await store.append_all(
            [
                ChatMessage(id="q", content="hi", type="user"),
                ChatMessage(id="a", content="Hello", type="assistant"),
            ]
        )
        return await store.list_messages()

    assert [m.id for m in run_with_store(tmp_path, scenario)] == ["q", "a"]
