"""Hotel intent taxonomy.

Static registry of the classification labels the responder may emit. Each
definition carries the routing information (department and base priority)
used by the task router, so this table is the single source of truth for
both routing and dashboard badges.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping

Priority = Literal["low", "standard", "high", "urgent"]


@dataclass(frozen=True)
class IntentDefinition:
    name: str
    description: str
    examples: tuple[str, ...]
    department: str | None
    requires_action: bool
    priority: Priority


def _define(
    name: str,
    description: str,
    examples: tuple[str, ...],
    department: str | None,
    requires_action: bool,
    priority: Priority,
) -> tuple[str, IntentDefinition]:
    return name, IntentDefinition(
        name=name,
        description=description,
        examples=examples,
        department=department,
        requires_action=requires_action,
        priority=priority,
    )


_DEFINITIONS = dict(
    [
        # Service requests
        _define(
            "request.housekeeping.towels",
            "Request for additional towels",
            ("I need more towels", "Can I get extra towels please?", "Send some towels to my room"),
            "housekeeping",
            True,
            "standard",
        ),
        _define(
            "request.housekeeping.cleaning",
            "Request for room cleaning",
            ("Can you clean my room?", "I need housekeeping", "The room needs cleaning"),
            "housekeeping",
            True,
            "standard",
        ),
        _define(
            "request.housekeeping.amenities",
            "Request for room amenities (toiletries, pillows, etc)",
            ("I need extra pillows", "Can I get more shampoo?", "Need a blanket", "Extra hangers please"),
            "housekeeping",
            True,
            "standard",
        ),
        _define(
            "request.maintenance",
            "Report of something broken or maintenance needed",
            (
                "The AC is not working",
                "Toilet is clogged",
                "Light bulb is out",
                "TV is broken",
                "Hot water not working",
            ),
            "maintenance",
            True,
            "high",
        ),
        _define(
            "request.room_service",
            "Food or beverage order",
            (
                "I want to order room service",
                "Can I order breakfast?",
                "Send a bottle of wine",
                "I want to order food",
            ),
            "room_service",
            True,
            "standard",
        ),
        _define(
            "request.concierge",
            "Concierge requests requiring action (bookings, arrangements, taxi)",
            (
                "Book a restaurant for tonight",
                "Arrange a tour",
                "Can you get me theatre tickets?",
            ),
            "concierge",
            True,
            "standard",
        ),
        _define(
            "inquiry.concierge",
            "Questions seeking recommendations or information from concierge",
            (
                "Can you recommend a good restaurant?",
                "What is there to do around here?",
                "Any suggestions for nightlife?",
                "Where should I go for dinner?",
            ),
            None,
            False,
            "low",
        ),
        _define(
            "request.transport",
            "Transportation requests (taxi, shuttle, airport transfer)",
            (
                "Call me a taxi",
                "Arrange a shuttle to the airport",
                "I need a car to the airport",
                "Book an airport transfer",
            ),
            "concierge",
            True,
            "standard",
        ),
        _define(
            "inquiry.transport",
            "Questions about transportation options or directions",
            (
                "How do I get to the airport?",
                "Is there a shuttle service?",
                "How far is the train station?",
                "What transport options are available?",
            ),
            None,
            False,
            "low",
        ),
        _define(
            "request.wakeup",
            "Request for a wake-up call",
            (
                "Wake me up at 6am",
                "Set a wake-up call for tomorrow",
                "Can I get a morning call at 7?",
                "I need an alarm call",
            ),
            "front_desk",
            True,
            "standard",
        ),
        _define(
            "request.luggage",
            "Luggage storage, delivery, or assistance",
            (
                "Can I leave my bags after checkout?",
                "Can someone bring my bags to the room?",
                "I need to store my suitcase",
            ),
            "front_desk",
            True,
            "standard",
        ),
        _define(
            "request.laundry",
            "Laundry, dry cleaning, or ironing requests",
            (
                "Can I get my clothes laundered?",
                "Do you have dry cleaning?",
                "I need a shirt ironed",
            ),
            "housekeeping",
            True,
            "standard",
        ),
        _define(
            "request.dnd",
            "Do not disturb or skip housekeeping request",
            (
                "Don't clean my room today",
                "No housekeeping please",
                "Do not disturb",
                "Skip cleaning tomorrow",
            ),
            "housekeeping",
            True,
            "low",
        ),
        _define(
            "request.room_change",
            "Request to change or switch rooms",
            (
                "I want to change rooms",
                "Can I move to a different room?",
                "I need a room on a higher floor",
            ),
            "front_desk",
            True,
            "high",
        ),
        _define(
            "request.lost_found",
            "Report of lost item or inquiry about found items",
            (
                "I lost my wallet",
                "I left something in my room",
                "Did anyone find a phone?",
                "I forgot my charger at the hotel",
            ),
            "front_desk",
            True,
            "standard",
        ),
        _define(
            "request.security",
            "Security concern or room lockout (non-emergency)",
            (
                "I am locked out of my room",
                "My key card is not working",
                "I feel unsafe",
            ),
            "front_desk",
            True,
            "high",
        ),
        _define(
            "request.noise",
            "Noise complaint about other guests or surroundings",
            (
                "The room next door is too loud",
                "Can you tell them to be quiet?",
                "There is a party on my floor",
                "Too much noise, I cannot sleep",
            ),
            "front_desk",
            True,
            "high",
        ),
        _define(
            "request.special_occasion",
            "Special occasion arrangements (birthday, anniversary, surprise)",
            (
                "It's our anniversary, can you arrange something?",
                "Can you put flowers in the room?",
                "Birthday surprise for my partner",
                "Can you arrange a cake?",
            ),
            "concierge",
            True,
            "standard",
        ),
        _define(
            "inquiry.parking",
            "Questions about parking options, valet, or fees",
            ("Where can I park?", "How much is parking?", "Do you have valet parking?"),
            None,
            False,
            "low",
        ),
        _define(
            "inquiry.accessibility",
            "Questions about accessibility features or disability accommodations",
            (
                "Do you have accessible rooms?",
                "Is there a wheelchair ramp?",
                "Do you have an elevator?",
            ),
            None,
            False,
            "low",
        ),
        _define(
            "inquiry.pet_policy",
            "Questions about pet policies and fees",
            ("Can I bring my dog?", "Is this hotel pet-friendly?", "What's the pet fee?", "Are pets allowed?"),
            None,
            False,
            "low",
        ),
        _define(
            "request.reservation.cancel",
            "Request to cancel a reservation",
            ("I want to cancel my booking", "Cancel my reservation", "I can't make it, please cancel"),
            "front_desk",
            True,
            "high",
        ),
        # Inquiries
        _define(
            "inquiry.checkout",
            "Questions about checkout time or procedure",
            ("What time is checkout?", "How do I check out?", "When do I need to leave?"),
            None,
            False,
            "low",
        ),
        _define(
            "request.checkout.late",
            "Request for late checkout",
            ("Can I get late checkout?", "I need to check out later", "Is late checkout available?"),
            "front_desk",
            True,
            "standard",
        ),
        _define(
            "inquiry.checkin",
            "Questions about check-in time or procedure",
            ("What time is check-in?", "How do I check in?", "Where do I go to check in?"),
            None,
            False,
            "low",
        ),
        _define(
            "request.checkin.early",
            "Request for early check-in",
            ("Can I check in early?", "I need early check-in", "Is early check-in available?"),
            "front_desk",
            True,
            "standard",
        ),
        _define(
            "inquiry.wifi",
            "Questions about WiFi password, connection, or availability",
            ("What is the WiFi password?", "How do I connect to WiFi?", "Is there internet?"),
            None,
            False,
            "low",
        ),
        _define(
            "request.maintenance.wifi",
            "WiFi or internet not working, needs technical fix",
            ("WiFi not working", "Internet is down", "I can't connect to the WiFi", "The internet is very slow"),
            "maintenance",
            True,
            "high",
        ),
        _define(
            "inquiry.amenity",
            "Questions about hotel amenities",
            ("Where is the pool?", "What time does the gym open?", "Do you have a spa?", "Is breakfast included?"),
            None,
            False,
            "low",
        ),
        _define(
            "inquiry.dining",
            "Questions about dining options",
            ("What restaurants do you have?", "What time is breakfast?", "Where can I eat?", "Room service hours?"),
            None,
            False,
            "low",
        ),
        _define(
            "inquiry.location",
            "Questions about locations (hotel facilities, nearby places)",
            ("Where is the lobby?", "Is there a pharmacy nearby?"),
            None,
            False,
            "low",
        ),
        _define(
            "inquiry.billing",
            "Questions about charges, bills, or payments",
            ("Can I see my bill?", "What's this charge for?", "How do I pay?", "Do you accept credit cards?"),
            "front_desk",
            False,
            "standard",
        ),
        _define(
            "request.billing.receipt",
            "Request for invoice, receipt, or billing document",
            (
                "Can I get an itemized receipt?",
                "I need an invoice for my company",
                "Please email me my bill",
            ),
            "front_desk",
            True,
            "standard",
        ),
        _define(
            "inquiry.reservation.status",
            "Questions about existing reservation details, dates, or confirmation",
            ("Do I have a booking?", "What's my confirmation number?", "Can you look up my reservation?"),
            None,
            False,
            "low",
        ),
        _define(
            "request.reservation.modify",
            "Requests to change, extend, upgrade, or cancel a reservation",
            ("Can I extend my stay?", "I want to change my reservation", "Can I upgrade my room?", "Book another night"),
            "front_desk",
            True,
            "standard",
        ),
        # Feedback
        _define(
            "feedback.complaint",
            "Negative feedback or complaint",
            ("I want to complain", "This is unacceptable", "Very disappointed", "I had a terrible experience"),
            "front_desk",
            True,
            "high",
        ),
        _define(
            "feedback.compliment",
            "Positive feedback or compliment",
            ("Great service!", "The room is amazing", "Best hotel experience"),
            None,
            False,
            "low",
        ),
        # Conversation
        _define("greeting", "Greeting or hello", ("Hello", "Hi", "Good morning", "Hey there"), None, False, "low"),
        _define("farewell", "Goodbye or thank you", ("Goodbye", "Thanks", "Bye", "Have a nice day"), None, False, "low"),
        # Emergency
        _define(
            "emergency",
            "Emergency situation requiring immediate attention",
            ("There is a fire", "Medical emergency", "Someone is hurt", "Help!", "Call 911"),
            "front_desk",
            True,
            "urgent",
        ),
        _define("unknown", "Unable to classify the intent", (), None, False, "low"),
    ]
)

INTENT_TAXONOMY: Mapping[str, IntentDefinition] = MappingProxyType(_DEFINITIONS)


def get_intent_names() -> list[str]:
    return list(INTENT_TAXONOMY)


def get_intent_definition(name: str) -> IntentDefinition | None:
    """Return the definition for ``name`` or ``None`` when it is not registered."""

    return INTENT_TAXONOMY.get(name)


def get_intents_by_department(department: str) -> list[str]:
    return [name for name, definition in INTENT_TAXONOMY.items() if definition.department == department]


def get_actionable_intents() -> list[str]:
    return [name for name, definition in INTENT_TAXONOMY.items() if definition.requires_action]
