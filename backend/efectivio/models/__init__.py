from .auth import User, SessionToken
from .clients import Client
from .documents import Quote, QuoteItem, Invoice, InvoiceItem, DocumentSequence
from .accounting import Account, JournalEntry, JournalLine, Expense
from .files import StoredFile
from .portal import ClientInvitation, ClientPortalUser, Project, Task, Appointment
from .settings import SystemConfig, WhiteLabel
from .audit import AuditLog

__all__ = [
    'User', 'SessionToken',
    'Client',
    'Quote', 'QuoteItem', 'Invoice', 'InvoiceItem', 'DocumentSequence',
    'Account', 'JournalEntry', 'JournalLine', 'Expense',
    'StoredFile',
    'ClientInvitation', 'ClientPortalUser', 'Project', 'Task', 'Appointment',
    'SystemConfig', 'WhiteLabel',
    'AuditLog',
]
