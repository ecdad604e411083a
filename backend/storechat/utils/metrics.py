# /storechat/utils/metrics.py

from prometheus_client import Counter, Histogram

# Prometheus metrics used across the service, kept in one place.

# Business Logic Metrics
message_counter = Counter('storechat_messages_total', 'Messages processed by the conversation pipeline', ['channel', 'status'])
order_counter = Counter('storechat_orders_total', 'Orders created', ['source', 'status'])
order_signal_counter = Counter('storechat_order_signals_total', 'Order directives detected in generated replies', ['signal'])
quota_counter = Counter('storechat_quota_checks_total', 'Message quota decisions', ['decision'])
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
ai_requests_counter = Counter('ai_requests_total', 'Total AI requests', ['model', 'status'])
database_operations_counter = Counter('database_operations_total', 'Database operations', ['operation', 'status'])

# Security Metrics
auth_attempts_counter = Counter('auth_attempts_total', 'Authentication attempts', ['status', 'method'])
webhook_signature_counter = Counter('webhook_signature_verifications_total', 'Webhook signature verifications', ['status'])

# Outbound delivery
messenger_send_counter = Counter('messenger_send_total', 'Replies delivered through the Messenger send API', ['status'])
