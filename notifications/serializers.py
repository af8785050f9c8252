"""
Serializers for notification models.
"""
from rest_framework import serializers
from .models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'user', 'title', 'message', 'type', 'kind', 'is_read', 'created_at']
        read_only_fields = fields
