"""
Database models for market search.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Float, JSON, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from src.core.database import Base


class SearchModel(Base):
    """
    One market search run.
    Maps to the 'searches' table.
    """
    __tablename__ = 'searches'

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(100), nullable=False, index=True)
    query = Column(String(500), nullable=False)
    niche_key = Column(String(100), nullable=False, index=True)
    global_opportunities = Column(Text, nullable=True)  # Aggregate insight, written after the run
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    companies = relationship(
        "SearchCompanyModel",
        back_populates="search",
        cascade="all, delete-orphan",
        order_by="SearchCompanyModel.created_at",
    )

    def __repr__(self):
        return f"<Search(id={self.id}, query='{self.query}', owner='{self.owner_id}')>"


class SearchCompanyModel(Base):
    """
    A company processed by a search, successful or failed.
    Maps to the 'search_companies' table.
    """
    __tablename__ = 'search_companies'

    id = Column(Integer, primary_key=True, autoincrement=True)
    search_id = Column(Integer, ForeignKey('searches.id', ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(String(100), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    website = Column(String(500))
    domain = Column(String(255), index=True)
    description = Column(Text)
    status = Column(String(20), nullable=False, default="success")  # success | failed
    error_message = Column(Text, nullable=True)

    # Extraction output
    raw_json = Column(JSON, nullable=True)
    summary = Column(Text, nullable=True)
    acquisition_fit_score = Column(Float, nullable=True)
    fit_band = Column(String(10), nullable=True)  # high | medium | low
    primary_industry = Column(String(100), nullable=True, index=True)
    secondary_industry = Column(String(100), nullable=True)
    favicon_url = Column(String(500), nullable=True)

    is_saved = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    search = relationship("SearchModel", back_populates="companies")
    people = relationship("PersonModel", back_populates="company", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_search_company_owner_saved', 'owner_id', 'is_saved'),
    )

    def __repr__(self):
        return f"<SearchCompany(id={self.id}, name='{self.name}', status='{self.status}')>"


class PersonModel(Base):
    """
    Contact discovered for a search company.
    Maps to the 'people' table.
    """
    __tablename__ = 'people'

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(Integer, ForeignKey('search_companies.id', ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(String(100), nullable=False, index=True)
    full_name = Column(String(255))
    first_name = Column(String(100))
    last_name = Column(String(155))
    role = Column(String(255), default="Unknown")
    email = Column(String(255), index=True)
    phone = Column(String(50))
    linkedin_url = Column(String(500))
    source = Column(String(50), default="apify")
    confidence_score = Column(Float, nullable=True)
    is_ceo = Column(Boolean, default=False)
    is_founder = Column(Boolean, default=False)
    is_executive = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    company = relationship("SearchCompanyModel", back_populates="people")


class NicheHistoryModel(Base):
    """
    Domains an owner has already been shown for a niche.
    Maps to the 'niche_history' table.
    """
    __tablename__ = 'niche_history'

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(String(100), nullable=False)
    niche_key = Column(String(100), nullable=False)
    domain = Column(String(255), nullable=False)
    first_seen_at = Column(DateTime, default=datetime.utcnow)
    last_seen_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('owner_id', 'niche_key', 'domain', name='uq_niche_history_owner_niche_domain'),
        Index('idx_niche_history_owner_niche', 'owner_id', 'niche_key'),
    )
