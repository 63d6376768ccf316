"""
Основной модуль бизнес-логики системы сертификатов.
"""

from .service import CertificateService, ValidationService, LeaderService
from .models import Certificate, CertificatePublic, CertificateRequest, BatchResult, ResolvedIdentity
from .generator import CertificateIDGenerator
from .csv_pipeline import CSVIngestionPipeline
from .database import DatabaseManager, CertificateRepository, LeaderRepository
from .identity import ProxyIdentityResolver
from .notifications import EmailNotifier

__version__ = "1.0.0"

__all__ = [
    'CertificateService',
    'ValidationService',
    'LeaderService',
    'Certificate',
    'CertificatePublic',
    'CertificateRequest',
    'BatchResult',
    'ResolvedIdentity',
    'CertificateIDGenerator',
    'CSVIngestionPipeline',
    'DatabaseManager',
    'CertificateRepository',
    'LeaderRepository',
    'ProxyIdentityResolver',
    'EmailNotifier'
]
