import io
from datetime import datetime

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from upi_verify.database import Base, init_db
from upi_verify.models.order import Order
from upi_verify.models.upi_config import UpiConfig
from upi_verify.services.ocr_engine import RecognitionResult, split_lines
from upi_verify.services.payment_lifecycle import PaymentLifecycleManager
from upi_verify.services.screenshot_pipeline import ScreenshotPipeline, ScreenshotUpload
from upi_verify.services.screenshot_storage import ScreenshotStorage
from upi_verify.utils.rate_limiter import reset_rate_limits

RECEIPT_TEXT = "Paid via GPay\nUTR: 320524N00124567\nThank you"
BLURRY_TEXT = "Payment successful\nThank you"


class FakeEngine:
    """Stands in for Tesseract: returns whatever text the test sets."""

    def __init__(self, text: str = RECEIPT_TEXT, confidence: float = 91.5):
        self.text = text
        self.confidence = confidence
        self.calls = 0
        self.is_started = False

    def recognize(self, image_bytes: bytes) -> RecognitionResult:
        self.calls += 1
        self.is_started = True
        return RecognitionResult(text=self.text, confidence=self.confidence, lines=split_lines(self.text))

    def shutdown(self):
        self.is_started = False


class FakeClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2024, 9, 15, 10, 0, 0)

    def __call__(self) -> datetime:
        return self.now


def make_png(width: int = 320, height: int = 120, mode: str = "RGB") -> bytes:
    buffer = io.BytesIO()
    Image.new(mode, (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_upload(content: bytes | None = None, content_type: str = "image/png") -> ScreenshotUpload:
    return ScreenshotUpload(
        filename="receipt.png",
        content_type=content_type,
        content=make_png() if content is None else content,
    )


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path):
    return ScreenshotStorage(upload_dir=str(tmp_path / "uploads"), url_prefix="/uploads/upi-payments")


@pytest.fixture
def manager(fake_engine, storage, clock):
    return PaymentLifecycleManager(
        pipeline=ScreenshotPipeline(fake_engine),
        storage=storage,
        max_attempts=3,
        expiry_hours=24,
        clock=clock,
    )


@pytest.fixture
def make_order(db):
    counter = {"n": 0}

    def _make(user_id: str = "user-1", amount: float = 499.0) -> Order:
        counter["n"] += 1
        order = Order(
            id=f"order-{counter['n']}",
            user_id=user_id,
            customer_name="Asha Verma",
            customer_email="asha@example.com",
            total_amount=amount,
            payment_method="UPI",
        )
        db.add(order)
        db.commit()
        return order

    return _make


@pytest.fixture
def upi_config(db):
    config = UpiConfig(is_active=True, upi_id="merchant@okaxis", merchant_name="Demo Store")
    db.add(config)
    db.commit()
    return config


@pytest.fixture
def client(session_factory, manager):
    from fastapi.testclient import TestClient

    from upi_verify.database import get_db
    from upi_verify.dependencies import get_lifecycle_manager
    from upi_verify.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lifecycle_manager] = lambda: manager
    reset_rate_limits()

    yield TestClient(app)

    app.dependency_overrides.clear()
    reset_rate_limits()
