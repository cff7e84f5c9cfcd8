# /armelle/utils/metrics.py

from prometheus_client import Counter, Histogram

# This file defines all Prometheus metrics used for application monitoring.
# Centralizing them here makes them easy to find and manage.

# Workflow Metrics
workflow_turns_counter = Counter('workflow_turns_total', 'Conversation turns processed', ['workflow', 'result'])
workflow_actions_counter = Counter('workflow_actions_total', 'Workflow action invocations', ['action', 'status'])
workflow_action_seconds = Histogram('workflow_action_seconds', 'Workflow action duration in seconds', ['action'])

# Storage Metrics
session_store_operations = Counter('session_store_operations_total', 'Session store operations', ['operation', 'status'])

# External Service Metrics
dgi_requests_counter = Counter('dgi_requests_total', 'DGI lookup requests', ['operation', 'status'])

# Performance Metrics
response_time_histogram = Histogram('response_time_seconds', 'Response time in seconds', ['endpoint'])
