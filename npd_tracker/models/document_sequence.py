"""DocumentSequence model: per-(organization, year) NPD number counter."""

from sqlalchemy import Column, ForeignKey, Integer

from npd_tracker.database import Base


class DocumentSequence(Base):
    """Last issued NPD sequence number for one organization and year.

    Incremented with a single ``UPDATE ... SET last_value = last_value + 1``
    inside the transaction that creates the NPD.

    Attributes:
        organization_id: FK to Organization (part of the primary key).
        tahun: Fiscal year (part of the primary key).
        last_value: Highest sequence number handed out so far.
    """

    __tablename__ = "document_sequence"

    organization_id = Column(Integer, ForeignKey("organization.id"), primary_key=True)
    tahun = Column(Integer, primary_key=True)
    last_value = Column(Integer, default=0, nullable=False)
