"""
여행 도우미 대화 자동 저장 테스트
"""
import asyncio

import pytest

from backend.traveltactix.services.conversations import ConversationAutosave


@pytest.mark.asyncio
async def test_final_flush_updates_document_created_by_timer(fake_db):
    collection = fake_db["ai_conversations"]
    original_insert = collection.insert_one

    async def slow_insert(document):
        await asyncio.sleep(0.05)
        return await original_insert(document)

    collection.insert_one = slow_insert
    autosave = ConversationAutosave(fake_db, "asha", delay=0.01)

    autosave.push([{"role": "user", "content": "Best chai in Kolkata?"}])
    await asyncio.sleep(0.02)
    autosave.push(
        [
            {"role": "user", "content": "Best chai in Kolkata?"},
            {"role": "assistant", "content": "Try the stalls near College Street."},
        ]
    )
    await autosave.flush()

    assert len(collection.docs) == 1
    saved = collection.docs[0]
    assert str(saved["_id"]) == autosave.conversation_id
    assert saved["title"] == "Best chai in Kolkata?"
    assert saved["messages"][-1]["role"] == "assistant"


@pytest.mark.asyncio
async def test_cancelled_autosave_writes_nothing(fake_db):
    autosave = ConversationAutosave(fake_db, "asha", delay=10)
    autosave.push([{"role": "user", "content": "hello"}])
    autosave.cancel()
    await autosave.flush()

    assert fake_db["ai_conversations"].docs == []
    assert autosave.conversation_id is None
