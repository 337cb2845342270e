import pytest

from chat_sync.models import Identity, Message


def test_identity_from_payload_maps_wire_keys():
    identity = Identity.from_payload(
        {
            "_id": "u1",
            "fullName": "Alice",
            "email": "alice@example.com",
            "profilePic": "https://img.example.com/a.png",
            "createdAt": "2024-01-01T00:00:00Z",
            "password": "never-surfaced",
        }
    )

    assert identity == Identity(
        id="u1",
        full_name="Alice",
        email="alice@example.com",
        profile_pic="https://img.example.com/a.png",
        created_at="2024-01-01T00:00:00Z",
    )


def test_identity_to_payload_omits_unset_fields():
    assert Identity(id="u2", full_name="Bob").to_payload() == {"_id": "u2", "fullName": "Bob"}


def test_message_from_payload_allows_image_only():
    message = Message.from_payload(
        {"_id": "m1", "senderId": "u1", "receiverId": "u2", "image": "data:image/png;base64,AA=="}
    )

    assert message.text is None
    assert message.image == "data:image/png;base64,AA=="
    assert message.sender_id == "u1"
    assert message.receiver_id == "u2"


def test_message_to_payload_keeps_wire_names():
    message = Message(id="m2", sender_id="u1", receiver_id="u2", text="hi", created_at="t0")

    assert message.to_payload() == {
        "_id": "m2",
        "senderId": "u1",
        "receiverId": "u2",
        "text": "hi",
        "createdAt": "t0",
    }


@pytest.mark.parametrize("payload", [{}, {"_id": ""}, {"_id": None, "text": "x"}, ["m1"], "m1"])
def test_message_without_id_rejected(payload):
    with pytest.raises(ValueError):
        Message.from_payload(payload)


def test_identity_without_id_rejected():
    with pytest.raises(ValueError, match="missing _id"):
        Identity.from_payload({"fullName": "Nobody"})
