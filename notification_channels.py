"""The fixed set of Adhan notification channels, one per sound."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

LOGGER = logging.getLogger(__name__)


class AdhanSound(str, Enum):
    DEFAULT = "default"
    MAKKAH = "makkah"
    MADINAH = "madinah"


@dataclass(frozen=True)
class NotificationChannel:
    """A platform channel permanently bound to one audio asset."""

    id: str
    name: str
    description: str
    sound_file: str


CHANNELS: Dict[AdhanSound, NotificationChannel] = {
    AdhanSound.DEFAULT: NotificationChannel(
        id="adhan-default",
        name="Adhan - Default",
        description="Notifications for prayer times with default Adhan sound",
        sound_file="adhan.mp3",
    ),
    AdhanSound.MAKKAH: NotificationChannel(
        id="adhan-makkah",
        name="Adhan - Makkah",
        description="Notifications for prayer times with Makkah Adhan sound",
        sound_file="adhan_makkah.mp3",
    ),
    AdhanSound.MADINAH: NotificationChannel(
        id="adhan-madinah",
        name="Adhan - Madinah",
        description="Notifications for prayer times with Madinah Adhan sound",
        sound_file="adhan_madinah.mp3",
    ),
}


def channel_for_sound(sound: AdhanSound) -> NotificationChannel:
    return CHANNELS[AdhanSound(sound)]


def channel_id_for_sound(sound: AdhanSound) -> str:
    return channel_for_sound(sound).id


class ChannelRegistry(ABC):
    """Platform hook that creates notification channels."""

    @abstractmethod
    def register_channel(self, channel: NotificationChannel) -> None:
        """Create *channel*; registering a known id with different audio must fail."""


def initialize_notification_channels(registry: ChannelRegistry) -> List[NotificationChannel]:
    """Register every Adhan channel with *registry* once at start-up."""
    LOGGER.info("Initializing %d Adhan notification channels", len(CHANNELS))
    registered = []
    for channel in CHANNELS.values():
        registry.register_channel(channel)
        LOGGER.debug("Registered channel %s with sound %s", channel.id, channel.sound_file)
        registered.append(channel)
    return registered
