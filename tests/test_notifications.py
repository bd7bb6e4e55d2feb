from src.shopqueue.services.notifications.hub import (
    CUSTOMER_JOINED,
    GLOBAL_CHANNEL,
    NotificationHub,
    shop_channel,
)


def test_publish_reaches_only_current_subscribers():
    hub = NotificationHub()
    received = []

    assert hub.publish(shop_channel("s1"), CUSTOMER_JOINED, {"entryId": "e0"}) == 0

    unsubscribe = hub.subscribe(shop_channel("s1"), received.append)
    assert hub.publish_to_shop("s1", CUSTOMER_JOINED, {"entryId": "e1"}) == 1

    unsubscribe()
    assert hub.subscriber_count(shop_channel("s1")) == 0
    assert hub.publish_to_shop("s1", CUSTOMER_JOINED, {"entryId": "e2"}) == 0

    assert len(received) == 1
    event = received[0]
    assert event.channel == "shop-s1"
    assert event.payload == {"type": CUSTOMER_JOINED, "shopId": "s1", "entryId": "e1"}


def test_failing_subscriber_does_not_block_others():
    hub = NotificationHub()
    received = []

    def broken(event):
        raise RuntimeError("socket closed")

    hub.subscribe(GLOBAL_CHANNEL, broken)
    hub.subscribe(GLOBAL_CHANNEL, received.append)

    assert hub.broadcast("shop-status-changed", {"shopId": "s1", "isOpen": True}) == 1
    assert received[0].name == "shop-status-changed"


def test_channels_are_isolated():
    hub = NotificationHub()
    a, b = [], []
    hub.subscribe(shop_channel("a"), a.append)
    hub.subscribe(shop_channel("b"), b.append)

    hub.publish_to_shop("a", CUSTOMER_JOINED, {})

    assert len(a) == 1
    assert b == []
