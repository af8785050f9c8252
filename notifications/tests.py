"""
Tests for low-stock alerts.
"""
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APITestCase

from catalog.models import Product, Variant
from notifications.models import Notification
from notifications.services import check_low_stock, low_stock_message, safe_check_low_stock
from notifications.tasks import check_low_stock_alerts, schedule_low_stock_check


class LowStockFixtureMixin:

    def create_stock(self):
        self.user = get_user_model().objects.create_user(username='manager', password='secret')
        self.product = Product.objects.create(
            name='Linen Dress',
            cost_price=Decimal('30.00'),
            selling_price=Decimal('70.00'),
        )
        # Under threshold
        self.low = Variant.objects.create(product=self.product, size='S', color='Beige', quantity=2)
        # At threshold: not low
        self.at_threshold = Variant.objects.create(product=self.product, size='M', color='Beige', quantity=5)
        self.plenty = Variant.objects.create(product=self.product, size='L', color='Beige', quantity=40)


class CheckLowStockTestCase(LowStockFixtureMixin, TestCase):

    def setUp(self):
        self.create_stock()

    def test_alert_for_each_variant_below_threshold(self):
        created = check_low_stock(self.user.id)

        self.assertEqual(created, 1)
        notification = Notification.objects.get(user=self.user)
        self.assertEqual(notification.message, low_stock_message(self.low))
        self.assertEqual(notification.kind, Notification.Kind.LOW_STOCK)
        self.assertEqual(notification.type, Notification.Type.WARNING)
        self.assertFalse(notification.is_read)
        self.assertIn('Linen Dress', notification.message)
        self.assertIn('2 left', notification.message)

    def test_repeated_checks_do_not_duplicate_alerts(self):
        check_low_stock(self.user.id)
        created = check_low_stock(self.user.id)

        self.assertEqual(created, 0)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 1)

    def test_read_alert_is_raised_again(self):
        check_low_stock(self.user.id)
        Notification.objects.filter(user=self.user).update(is_read=True)

        created = check_low_stock(self.user.id)

        self.assertEqual(created, 1)
        self.assertEqual(Notification.objects.filter(user=self.user, is_read=False).count(), 1)

    def test_changed_quantity_is_a_new_alert(self):
        check_low_stock(self.user.id)
        self.low.quantity = 1
        self.low.save()

        created = check_low_stock(self.user.id)

        self.assertEqual(created, 1)
        self.assertEqual(Notification.objects.filter(user=self.user).count(), 2)

    def test_unset_threshold_defaults_to_five(self):
        Variant.objects.create(
            product=self.product, size='XL', color='Red', quantity=4, low_stock_threshold=None
        )
        Variant.objects.create(
            product=self.product, size='XS', color='Red', quantity=5, low_stock_threshold=None
        )

        created = check_low_stock(self.user.id)

        self.assertEqual(created, 2)
        messages = Notification.objects.values_list('message', flat=True)
        self.assertTrue(any('XL/Red' in message for message in messages))
        self.assertFalse(any('XS/Red' in message for message in messages))

    def test_alerts_are_per_user(self):
        other = get_user_model().objects.create_user(username='owner', password='secret')

        check_low_stock(self.user.id)
        created = check_low_stock(other.id)

        self.assertEqual(created, 1)
        self.assertEqual(Notification.objects.count(), 2)

    def test_no_recipient_is_a_no_op(self):
        self.assertEqual(check_low_stock(None), 0)
        self.assertEqual(check_low_stock(99999), 0)
        self.assertFalse(Notification.objects.exists())

    def test_failures_are_swallowed(self):
        with patch('notifications.services.low_stock_variants', side_effect=RuntimeError('db hiccup')):
            self.assertEqual(safe_check_low_stock(self.user.id), 0)

    def test_task_runs_check(self):
        created = check_low_stock_alerts(self.user.id)

        self.assertEqual(created, 1)
        self.assertTrue(Notification.objects.filter(user=self.user).exists())

    def test_schedule_waits_for_commit(self):
        with patch('notifications.tasks.check_low_stock_alerts.delay') as delay:
            with self.captureOnCommitCallbacks(execute=False) as callbacks:
                schedule_low_stock_check(self.user.id)
            delay.assert_not_called()
            self.assertEqual(len(callbacks), 1)

            callbacks[0]()
            delay.assert_called_once_with(self.user.id)

    def test_schedule_without_recipient(self):
        with self.captureOnCommitCallbacks(execute=False) as callbacks:
            schedule_low_stock_check(None)
        self.assertEqual(callbacks, [])


class NotificationApiTestCase(LowStockFixtureMixin, APITestCase):

    def setUp(self):
        self.create_stock()

    def test_fetching_runs_low_stock_check(self):
        response = self.client.get(f'/api/notifications/{self.user.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['title'], 'Low Stock Alert')
        self.assertFalse(response.data[0]['is_read'])

        response = self.client.get(f'/api/notifications/{self.user.id}/')
        self.assertEqual(len(response.data), 1)

    def test_fetching_survives_failed_check(self):
        Notification.objects.create(user=self.user, title='Welcome', message='Hello')

        with patch('notifications.services.check_low_stock', side_effect=RuntimeError('boom')):
            response = self.client.get(f'/api/notifications/{self.user.id}/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([n['title'] for n in response.data], ['Welcome'])

    def test_mark_read(self):
        notification = Notification.objects.create(user=self.user, title='Welcome', message='Hello')

        response = self.client.post(f'/api/notifications/{notification.id}/read/')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        notification.refresh_from_db()
        self.assertTrue(notification.is_read)

    def test_mark_read_missing(self):
        response = self.client.post('/api/notifications/99999/read/')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
