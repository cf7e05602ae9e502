"""
외부 서비스 어댑터 패키지

원격 메일함 API, 푸시 채널, 암호화 서비스와의 통신을 담당하는 어댑터들을 포함합니다.
"""

from .mailbox_api_client import MailTmApiClientAdapter
from .mercure_subscription import MercureSubscriptionAdapter, PollingOnlySubscription
from .encryption_service import EncryptionServiceAdapter

__all__ = [
    "MailTmApiClientAdapter",
    "MercureSubscriptionAdapter",
    "PollingOnlySubscription",
    "EncryptionServiceAdapter",
]
