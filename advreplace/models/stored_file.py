from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from advreplace.db.base import Base


class StoredFile(Base):
    """
    Row of the host application's file index.

    Owned by the host schema; the tool only reads it. Content bytes are
    kept in the file store, addressed by contenthash.
    """

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contenthash: Mapped[str] = mapped_column(String(40), nullable=False, index=True)
    contextid: Mapped[int] = mapped_column(BigInteger, nullable=False)
    component: Mapped[str] = mapped_column(String(100), nullable=False)
    filearea: Mapped[str] = mapped_column(String(50), nullable=False)
    itemid: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    filepath: Mapped[str] = mapped_column(String(255), nullable=False, default="/")
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mimetype: Mapped[str | None] = mapped_column(String(100), nullable=True)
    filesize: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
