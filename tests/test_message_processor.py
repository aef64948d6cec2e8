"""Behavioural tests for :mod:`butler.core.message_processor`."""

import asyncio

import pytest

from butler.ai.responder import AIResponse
from butler.channels import APOLOGY_MESSAGE, WebChatAdapter, WhatsAppAdapter
from butler.core.autonomy import ActionConfig
from butler.core.message_processor import (
    STANDARD_ESCALATION_NOTICE,
    URGENT_ESCALATION_NOTICE,
    pending_message,
)
from butler.errors import ApprovalStateError
from butler.events import EventType


def test_actionable_intent_creates_task(services, responder, recorder, make_inbound):
    responder.reply("Of course! Towels are on the way.", "request.housekeeping.towels", 0.9)

    async def scenario():
        outbound = await services.processor.process(make_inbound("I need more towels"))
        tasks = await services.tasks.list()
        detail = await services.conversations.get_detail(outbound.conversation_id)
        return outbound, tasks, detail

    outbound, tasks, detail = asyncio.run(scenario())

    assert tasks.total == 1
    task = tasks.items[0]
    assert task.department == "housekeeping"
    assert task.type == "housekeeping"
    assert task.priority == "standard"
    assert task.source == "auto"
    assert task.conversation_id == outbound.conversation_id
    assert task.message_id == detail.messages[0].id
    assert task.description == '"I need more towels" - Guest, via whatsapp'

    assert outbound.content == "Of course! Towels are on the way."
    assert outbound.metadata["task_created"] is True
    assert outbound.metadata["task_id"] == task.id
    assert outbound.metadata["task_department"] == "housekeeping"
    assert [e.payload["task_id"] for e in recorder.of_type(EventType.TASK_CREATED)] == [task.id]


def test_message_order_and_conversation_state(services, make_inbound, recorder):
    async def scenario():
        outbound = await services.processor.process(make_inbound("Hello"))
        detail = await services.conversations.get_detail(outbound.conversation_id)
        return outbound, detail

    outbound, detail = asyncio.run(scenario())

    assert [(m.direction, m.sender_type) for m in detail.messages] == [
        ("inbound", "guest"),
        ("outbound", "ai"),
    ]
    assert detail.messages[1].content == outbound.content
    assert detail.messages[1].intent == "greeting"
    assert detail.state == "active"
    assert detail.guest_id is not None
    received = recorder.of_type(EventType.MESSAGE_RECEIVED)
    sent = recorder.of_type(EventType.MESSAGE_SENT)
    assert len(received) == 1 and len(sent) == 1
    assert recorder.events.index(received[0]) < recorder.events.index(sent[0])


def test_no_task_below_confidence_threshold(services, responder, make_inbound):
    responder.reply("Sure, towels coming.", "request.housekeeping.towels", 0.55)

    async def scenario():
        await services.processor.process(make_inbound("towels?"))
        return await services.tasks.list()

    assert asyncio.run(scenario()).total == 0


def test_no_task_for_informational_intent(services, responder, make_inbound):
    responder.reply("The pool opens at 7am.", "inquiry.amenity", 0.95)

    async def scenario():
        outbound = await services.processor.process(make_inbound("When does the pool open?"))
        return outbound, await services.tasks.list()

    outbound, tasks = asyncio.run(scenario())
    assert tasks.total == 0
    assert outbound.metadata is None


def test_vip_guest_task_priority_is_elevated(services, responder, vip_guest, make_inbound):
    responder.reply("Right away, Ada.", "request.housekeeping.towels", 0.9)

    async def scenario():
        await vip_guest()
        await services.processor.process(make_inbound("I need more towels", channel_id="+15559990000"))
        return await services.tasks.list()

    task = asyncio.run(scenario()).items[0]
    assert task.priority == "high"
    assert task.room_number == "412"
    assert task.description == '"I need more towels" - Ada Lovelace, Room 412, via whatsapp'


def test_vip_elevation_can_be_disabled(services, responder, vip_guest, make_inbound):
    responder.reply("Right away.", "request.maintenance", 0.9)

    async def scenario():
        settings = services.autonomy.settings
        settings.vip_overrides.elevate_task_priority = False
        await services.autonomy.save_settings(settings)
        await vip_guest()
        await services.processor.process(make_inbound("The AC is not working", channel_id="+15559990000"))
        return await services.tasks.list()

    assert asyncio.run(scenario()).items[0].priority == "high"


def test_task_requiring_approval_is_queued(services, responder, make_inbound):
    responder.reply("I'll check on towels for you.", "request.housekeeping.towels", 0.9)

    async def scenario():
        settings = services.autonomy.settings
        settings.actions["createHousekeepingTask"] = ActionConfig(level="L1")
        await services.autonomy.save_settings(settings)
        outbound = await services.processor.process(make_inbound("I need more towels"))
        tasks_before = await services.tasks.list()
        item = await services.approvals.get(outbound.metadata["approval_id"])
        await services.approvals.approve(item.id, "staff_7")
        tasks_after = await services.tasks.list()
        return outbound, item, tasks_before, tasks_after

    outbound, item, tasks_before, tasks_after = asyncio.run(scenario())

    assert tasks_before.total == 0
    assert outbound.metadata["task_pending_approval"] is True
    assert "task_created" not in outbound.metadata
    assert item.type == "task"
    assert item.action_type == "createHousekeepingTask"
    assert item.action_data["department"] == "housekeeping"
    assert tasks_after.total == 1
    assert tasks_after.items[0].description == item.action_data["description"]


def test_emergency_escalates_with_urgent_notice(services, responder, recorder, make_inbound):
    responder.reply("Please stay safe.", "emergency", 0.95)

    async def scenario():
        outbound = await services.processor.process(make_inbound("There is a fire"))
        conversation = await services.conversations.get(outbound.conversation_id)
        tasks = await services.tasks.list()
        return outbound, conversation, tasks

    outbound, conversation, tasks = asyncio.run(scenario())

    assert conversation.state == "escalated"
    assert outbound.content == f"Please stay safe.\n\n{URGENT_ESCALATION_NOTICE}"
    assert outbound.metadata["escalated"] is True
    assert outbound.metadata["escalation_reasons"] == ["emergency"]
    assert outbound.metadata["escalation_priority"] == "urgent"
    assert tasks.items[0].priority == "urgent"
    assert tasks.items[0].department == "front_desk"
    escalations = recorder.of_type(EventType.CONVERSATION_ESCALATED)
    assert escalations[0].payload["priority"] == "urgent"


def test_human_request_escalates_with_standard_notice(services, responder, make_inbound):
    responder.reply("Happy to help.", "greeting", 0.9)

    async def scenario():
        return await services.processor.process(make_inbound("Can I speak to a human please"))

    outbound = asyncio.run(scenario())
    assert outbound.content.endswith(STANDARD_ESCALATION_NOTICE)
    assert outbound.metadata["escalation_reasons"] == ["human_requested"]
    assert outbound.metadata["escalation_priority"] == "standard"


def test_already_escalated_conversation_is_not_escalated_again(
    services, responder, recorder, make_inbound
):
    responder.reply("Happy to help.", "greeting", 0.9)

    async def scenario():
        first = await services.processor.process(make_inbound("I want to talk to a manager"))
        second = await services.processor.process(make_inbound("Let me talk to a manager now"))
        return first, second

    first, second = asyncio.run(scenario())

    assert first.metadata["escalated"] is True
    assert second.conversation_id == first.conversation_id
    assert "escalated" not in (second.metadata or {})
    assert len(recorder.of_type(EventType.CONVERSATION_ESCALATED)) == 1


def test_repeated_low_confidence_escalates(services, responder, make_inbound):
    responder.reply("I'm not sure I follow.", "unknown", 0.3)

    async def scenario():
        first = await services.processor.process(make_inbound("blorp"))
        second = await services.processor.process(make_inbound("zxq"))
        conversation = await services.conversations.get(second.conversation_id)
        return first, second, conversation

    first, second, conversation = asyncio.run(scenario())

    assert first.metadata["pending_approval"] is True
    assert "escalated" not in first.metadata
    assert conversation.state == "escalated"
    item = asyncio.run(services.approvals.get(second.metadata["approval_id"]))
    assert "repeated_low_confidence" in item.action_data["metadata"]["escalation_reasons"]


def test_low_confidence_response_is_held_for_approval(services, responder, recorder, make_inbound):
    responder.reply("The spa is on floor 3.", "inquiry.amenity", 0.65)

    async def scenario():
        outbound = await services.processor.process(make_inbound("where is spa"))
        item = await services.approvals.get(outbound.metadata["approval_id"])
        detail = await services.conversations.get_detail(outbound.conversation_id)
        return outbound, item, detail

    outbound, item, detail = asyncio.run(scenario())

    assert outbound.content == pending_message("inquiry.amenity", "")
    assert outbound.metadata == {
        "pending_approval": True,
        "approval_id": item.id,
    }
    assert "The spa is on floor 3." not in outbound.content
    assert item.type == "response"
    assert item.action_type == "respondToGuest"
    assert item.priority == "normal"
    assert item.action_data["content"] == "The spa is on floor 3."
    assert item.action_data["confidence"] == 0.65
    # The holding reply is stored; the original is not sent.
    assert detail.messages[-1].content == outbound.content
    assert recorder.of_type(EventType.MESSAGE_SENT) == []


def test_very_low_confidence_is_urgent(services, responder, make_inbound):
    responder.reply("Hmm.", None, 0.2)

    async def scenario():
        outbound = await services.processor.process(make_inbound("???", channel="webchat", channel_id="sess-1"))
        return await services.approvals.get(outbound.metadata["approval_id"])

    assert asyncio.run(scenario()).priority == "urgent"


def test_missing_confidence_defaults_to_approval(services, responder, make_inbound):
    responder.reply("Let me check.")

    async def scenario():
        return await services.processor.process(make_inbound("something"))

    outbound = asyncio.run(scenario())
    assert outbound.metadata["pending_approval"] is True
    assert outbound.content == pending_message(None)


def test_l1_response_policy_holds_confident_replies(services, make_inbound):
    async def scenario():
        settings = services.autonomy.settings
        settings.actions["respondToGuest"] = ActionConfig(level="L1")
        await services.autonomy.save_settings(settings)
        return await services.processor.process(make_inbound("Hello"))

    outbound = asyncio.run(scenario())
    assert outbound.metadata["pending_approval"] is True
    assert outbound.content == "Thanks there, I'm looking into this for you. Someone from our team will get back to you shortly."


def test_vip_complaint_requires_approval(services, responder, vip_guest, make_inbound):
    responder.reply("I'm so sorry, Ada.", "feedback.complaint", 0.9)

    async def scenario():
        await vip_guest()
        outbound = await services.processor.process(
            make_inbound("I want to complain about the noise", channel_id="+15559990000")
        )
        item = await services.approvals.get(outbound.metadata["approval_id"])
        tasks = await services.tasks.list()
        return outbound, item, tasks

    outbound, item, tasks = asyncio.run(scenario())

    assert outbound.content.startswith("Thanks Ada, I'm sorry to hear that.")
    assert item.guest_id == "guest_vip"
    assert item.action_data["metadata"]["escalated"] is True
    assert item.action_data["metadata"]["task_created"] is True
    assert tasks.items[0].priority == "urgent"


def test_approving_held_response_sends_original(services, responder, recorder, make_inbound):
    responder.reply("Checkout is at 11am.", "inquiry.checkout", 0.65)

    async def scenario():
        outbound = await services.processor.process(make_inbound("when is checkout"))
        approval_id = outbound.metadata["approval_id"]
        approved = await services.approvals.approve(approval_id, "staff_1")
        detail = await services.conversations.get_detail(outbound.conversation_id)
        with pytest.raises(ApprovalStateError):
            await services.approvals.approve(approval_id, "staff_2")
        return approved, detail

    approved, detail = asyncio.run(scenario())

    assert approved.status == "approved"
    assert approved.decided_by == "staff_1"
    assert detail.messages[-1].content == "Checkout is at 11am."
    assert detail.messages[-1].sender_type == "ai"
    sent = recorder.of_type(EventType.MESSAGE_SENT)
    assert [e.payload["content"] for e in sent] == ["Checkout is at 11am."]
    assert len(recorder.of_type(EventType.APPROVAL_EXECUTED)) == 1


def test_responder_failure_propagates_and_adapter_apologises(services, responder, make_inbound):
    responder.response = RuntimeError("model unavailable")
    adapter = WhatsAppAdapter()

    async def scenario():
        with pytest.raises(RuntimeError):
            await services.processor.process(make_inbound("Hello"))
        return await adapter.handle(services.processor, make_inbound("Hello again"))

    outbound = asyncio.run(scenario())
    assert outbound.content == APOLOGY_MESSAGE
    assert outbound.metadata == {"error": True}
    assert outbound.conversation_id


def test_guest_lookup_failure_is_tolerated(services, make_inbound, monkeypatch):
    async def broken(phone):
        raise ConnectionError("guest store offline")

    monkeypatch.setattr(services.guests, "find_or_create_by_phone", broken)

    async def scenario():
        outbound = await services.processor.process(make_inbound("Hello"))
        return outbound, await services.conversations.get(outbound.conversation_id)

    outbound, conversation = asyncio.run(scenario())
    assert outbound.content == "Hello! How can I help?"
    assert conversation.guest_id is None


def test_task_creation_failure_does_not_block_reply(services, responder, make_inbound, monkeypatch):
    responder.reply("Towels on the way.", "request.housekeeping.towels", 0.9)

    async def broken(data):
        raise ConnectionError("task store offline")

    monkeypatch.setattr(services.tasks, "create", broken)

    async def scenario():
        return await services.processor.process(make_inbound("I need more towels"))

    outbound = asyncio.run(scenario())
    assert outbound.content == "Towels on the way."
    assert outbound.metadata is None


def test_webchat_messages_skip_guest_identification(services, responder, make_inbound):
    async def scenario():
        outbound = await WebChatAdapter().handle(
            services.processor, make_inbound("Hello", channel="webchat", channel_id="sess-9")
        )
        return outbound, await services.conversations.get(outbound.conversation_id)

    outbound, conversation = asyncio.run(scenario())
    assert conversation.guest_id is None
    assert responder.calls[0][2].guest is None


def test_concurrent_messages_share_one_conversation(services, make_inbound):
    class SlowResponder:
        def __init__(self):
            self.active = 0
            self.max_active = 0

        async def generate(self, conversation, inbound, guest_context=None):
            self.active += 1
            self.max_active = max(self.max_active, self.active)
            await asyncio.sleep(0.01)
            self.active -= 1
            return AIResponse(content="ok", intent="greeting", confidence=0.95)

    slow = SlowResponder()
    services.processor._responder = slow

    async def scenario():
        return await asyncio.gather(
            *(services.processor.process(make_inbound(f"msg {i}")) for i in range(5))
        )

    outbounds = asyncio.run(scenario())
    assert len({o.conversation_id for o in outbounds}) == 1
    assert slow.max_active == 1
    detail = asyncio.run(services.conversations.get_detail(outbounds[0].conversation_id))
    assert len(detail.messages) == 10


def test_pending_message_templates():
    assert pending_message("request.housekeeping.towels", "Ada") == (
        "Thanks Ada, I've noted your housekeeping request. "
        "Our team will arrange this and confirm shortly."
    )
    assert pending_message("inquiry.wifi", None).startswith("Thanks there, great question!")
    assert pending_message("emergency", "Bo").startswith("Thanks Bo, I've immediately alerted")
    assert pending_message("greeting", "Bo") == (
        "Thanks Bo, I'm looking into this for you. Someone from our team will get back to you shortly."
    )


def test_resolved_conversation_needs_fresh_low_confidence_turns(
    services, responder, recorder, make_inbound
):
    responder.reply("I'm not sure I follow.", "unknown", 0.3)

    async def scenario():
        first = await services.processor.process(make_inbound("blorp"))
        await services.processor.process(make_inbound("zxq"))
        await services.conversations.resolve(first.conversation_id, staff_id="staff_1")
        await services.processor.process(make_inbound("qwfp"))
        after_one = await services.conversations.get(first.conversation_id)
        await services.processor.process(make_inbound("arst"))
        after_two = await services.conversations.get(first.conversation_id)
        return after_one, after_two

    after_one, after_two = asyncio.run(scenario())

    assert after_one.state == "active"
    assert after_two.state == "escalated"
    assert len(recorder.of_type(EventType.CONVERSATION_ESCALATED)) == 2


def test_broken_ac_creates_maintenance_task(services, responder, vip_guest, make_inbound):
    responder.reply("Sorry about that, sending someone up.", "request.maintenance", 0.9)

    async def scenario():
        regular = await services.processor.process(make_inbound("The AC is not working"))
        await vip_guest()
        vip = await services.processor.process(
            make_inbound("The AC is not working", channel_id="+15559990000")
        )
        return regular, vip, await services.tasks.list()

    regular, vip, tasks = asyncio.run(scenario())

    by_conversation = {task.conversation_id: task for task in tasks.items}
    regular_task = by_conversation[regular.conversation_id]
    vip_task = by_conversation[vip.conversation_id]
    assert (regular_task.type, regular_task.department, regular_task.priority) == (
        "maintenance",
        "maintenance",
        "high",
    )
    assert (vip_task.type, vip_task.priority) == ("maintenance", "urgent")
    assert regular.metadata["task_priority"] == "high"
    assert vip.metadata["task_priority"] == "urgent"


def test_l1_response_policy_uses_maintenance_holding_reply(services, responder, make_inbound):
    responder.reply("Sorry about that, sending someone up.", "request.maintenance", 0.9)

    async def scenario():
        settings = services.autonomy.settings
        settings.actions["respondToGuest"] = ActionConfig(level="L1")
        await services.autonomy.save_settings(settings)
        outbound = await services.processor.process(make_inbound("The AC is not working"))
        return outbound, await services.approvals.list(status=None), await services.tasks.list()

    outbound, approvals, tasks = asyncio.run(scenario())

    assert outbound.content == (
        "Thanks there, I've flagged this with our maintenance team. "
        "Someone will look into it shortly."
    )
    assert [(item.type, item.status) for item in approvals.items] == [("response", "pending")]
    assert approvals.items[0].action_data["content"] == "Sorry about that, sending someone up."
    assert [(task.type, task.priority) for task in tasks.items] == [("maintenance", "high")]
