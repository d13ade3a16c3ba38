from sqlalchemy import Column, Integer, String, Text

from .base import TenantModel


class Family(TenantModel):
    __tablename__ = "families"

    id = Column(Integer, primary_key=True, index=True)

    father_name = Column(String(255), nullable=True)
    father_cnic = Column(String(30), nullable=True)
    father_mobile = Column(String(30), nullable=True, index=True)
    mother_name = Column(String(255), nullable=True)
    mother_mobile = Column(String(30), nullable=True, index=True)

    # Family head for messaging
    family_head_name = Column(String(255), nullable=True)
    whatsapp_number = Column(String(30), nullable=True)

    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    total_children = Column(Integer, nullable=False, default=0)

    @property
    def effective_whatsapp(self):
        return self.whatsapp_number or self.father_mobile

    @property
    def effective_family_head(self):
        return self.family_head_name or self.father_name

    def __repr__(self):
        return f"<Family(id={self.id}, father={self.father_name}, children={self.total_children})>"
