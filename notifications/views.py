"""
Notification API Views.

Implements:
- GET /notifications/{user_id}/ - Refresh low-stock alerts, then list
- POST /notifications/{id}/read/ - Mark one notification read
"""
from rest_framework import generics, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Notification
from .serializers import NotificationSerializer
from .services import safe_check_low_stock


class UserNotificationListView(generics.ListAPIView):
    """
    GET: Notifications for a user, newest first.

    Runs the low-stock check for the user before listing; a failing check
    still returns whatever is already stored.
    """
    serializer_class = NotificationSerializer

    def list(self, request, *args, **kwargs):
        safe_check_low_stock(self.kwargs['user_id'])
        return super().list(request, *args, **kwargs)

    def get_queryset(self):
        return Notification.objects.filter(user_id=self.kwargs['user_id']).order_by('-created_at', '-id')


class NotificationMarkReadView(APIView):
    """
    POST: Mark a notification as read.
    """

    def post(self, request, pk):
        updated = Notification.objects.filter(pk=pk).update(is_read=True)
        if not updated:
            return Response(
                {'error': f'Notification {pk} not found'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response({'success': True})
