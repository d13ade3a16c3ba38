# schooldesk/services/__init__.py
