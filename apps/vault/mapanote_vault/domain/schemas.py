from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from mapanote_vault.util import rfc3339_now

MANIFEST_VERSION = "1.0"


class CountryStats(BaseModel):
    note_count: int = Field(0, ge=0)
    last_updated: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class VaultManifest(BaseModel):
    version: str = MANIFEST_VERSION
    created: str = Field(default_factory=rfc3339_now)
    entities: dict[str, CountryStats] = Field(default_factory=dict)


class Topic(BaseModel):
    id: str
    title: str
    summary: Optional[str] = None
    color: Optional[str] = None
    pinned: bool = False
    created_at: str
    updated_at: str


class TopicCountryRelation(BaseModel):
    topic_id: str
    country_slug: str
    note_count: int = Field(0, ge=0)
    last_updated: Optional[str] = None


class TopicsManifest(BaseModel):
    version: str = MANIFEST_VERSION
    topics: list[Topic] = Field(default_factory=list)
    relations: list[TopicCountryRelation] = Field(default_factory=list)

    def find_topic(self, topic_id: str) -> Optional[Topic]:
        for topic in self.topics:
            if topic.id == topic_id:
                return topic
        return None

    def relations_for_topic(self, topic_id: str) -> list[TopicCountryRelation]:
        return [r for r in self.relations if r.topic_id == topic_id]

    def find_relation(self, topic_id: str, country_slug: str) -> Optional[TopicCountryRelation]:
        for rel in self.relations:
            if rel.topic_id == topic_id and rel.country_slug == country_slug:
                return rel
        return None


class TopicWithCountries(BaseModel):
    topic: Topic
    countries: list[str] = Field(default_factory=list)
    note_count: int = 0


class CountryMetadata(BaseModel):
    slug: str
    name: str
    iso2: str
    iso3: str = ""
    region: str = ""
    subregion: str = ""
    summary: str = ""
    aliases: list[str] = Field(default_factory=list)


class CountryWithStats(CountryMetadata):
    note_count: int = 0
    last_updated: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
