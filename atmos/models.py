# File: atmos/models.py

"""
Flat data objects exchanged between the AI service, the cache and the dashboard.

Field names are snake_case in Python; ``to_dict``/``from_dict`` use the camelCase
keys of the AI response JSON so cached entries and browser stores keep that shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class AqiLevel(str, Enum):
    GOOD = 'Good'
    MODERATE = 'Moderate'
    UNHEALTHY_SENSITIVE = 'Unhealthy for Sensitive Groups'
    UNHEALTHY = 'Unhealthy'
    VERY_UNHEALTHY = 'Very Unhealthy'
    HAZARDOUS = 'Hazardous'
    UNKNOWN = 'Unknown'

    @classmethod
    def parse(cls, value):
        """Maps a stored level string back to the enum; unrecognised values become UNKNOWN."""
        if isinstance(value, cls):
            return value
        for level in cls:
            if level.value == value:
                return level
        return cls.UNKNOWN


@dataclass
class Pollutant:
    name: str
    value: float
    unit: str = 'µg/m³'
    description: Optional[str] = None

    def to_dict(self):
        data = {'name': self.name, 'value': self.value, 'unit': self.unit}
        if self.description is not None:
            data['description'] = self.description
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            name=str(data.get('name', 'Unknown')),
            value=data.get('value', 0),
            unit=data.get('unit') or 'µg/m³',
            description=data.get('description'),
        )


@dataclass
class AqiData:
    city: str
    aqi: float
    level: AqiLevel
    dominant_pollutant: str
    pollutants: List[Pollutant]
    health_advice: str
    last_updated: str
    source_urls: List[str] = field(default_factory=list)
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    uv_index: Optional[float] = None

    def to_dict(self):
        return {
            'city': self.city,
            'aqi': self.aqi,
            'level': self.level.value,
            'dominantPollutant': self.dominant_pollutant,
            'pollutants': [p.to_dict() for p in self.pollutants],
            'temperature': self.temperature,
            'humidity': self.humidity,
            'uvIndex': self.uv_index,
            'healthAdvice': self.health_advice,
            'lastUpdated': self.last_updated,
            'sourceUrls': list(self.source_urls),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            city=data['city'],
            aqi=data.get('aqi', 0),
            level=AqiLevel.parse(data.get('level')),
            dominant_pollutant=data.get('dominantPollutant', 'Unknown'),
            pollutants=[Pollutant.from_dict(p) for p in data.get('pollutants') or []],
            health_advice=data.get('healthAdvice', 'No advice available.'),
            last_updated=data.get('lastUpdated', ''),
            source_urls=list(data.get('sourceUrls') or []),
            temperature=data.get('temperature'),
            humidity=data.get('humidity'),
            uv_index=data.get('uvIndex'),
        )


@dataclass
class CitySuggestion:
    name: str
    aqi: Optional[float] = None
    country: Optional[str] = None

    def to_dict(self):
        data = {'name': self.name, 'aqi': self.aqi}
        if self.country:
            data['country'] = self.country
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(name=str(data['name']), aqi=data.get('aqi'), country=data.get('country'))


@dataclass
class ChatMessage:
    id: str
    role: str  # 'user' | 'model'
    text: str
    is_typing: bool = False

    def to_dict(self):
        data = {'id': self.id, 'role': self.role, 'text': self.text}
        if self.is_typing:
            data['isTyping'] = True
        return data

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=str(data.get('id', '')),
            role=data.get('role', 'model'),
            text=data.get('text', ''),
            is_typing=bool(data.get('isTyping', False)),
        )


@dataclass
class CacheEntry:
    data: object
    timestamp: int  # epoch ms
    expiry: int     # epoch ms

    def to_dict(self):
        return {'data': self.data, 'timestamp': self.timestamp, 'expiry': self.expiry}

    @classmethod
    def from_dict(cls, data):
        return cls(data=data['data'], timestamp=int(data['timestamp']), expiry=int(data['expiry']))
