import os
import random

from locust import HttpUser, task, between

# A seller account created beforehand with `python -m orderdrop.manage create-seller`
SELLER_USERNAME = os.getenv("LOCUST_SELLER_USERNAME", "seller")
SELLER_PASSWORD = os.getenv("LOCUST_SELLER_PASSWORD", "seller")


class SellerUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        r = self.client.post("/api/login", json={"username": SELLER_USERNAME, "password": SELLER_PASSWORD})
        self.logged_in = r.status_code == 200
        self.order_numbers = []

    @task(3)
    def create_order(self):
        if not self.logged_in:
            return
        number = f"LOAD-{random.randint(1, 1_000_000_000)}"
        r = self.client.post("/api/orders", json={"orderNumber": number})
        if r.status_code == 201:
            self.order_numbers.append(number)

    @task(2)
    def verify_order(self):
        if not self.order_numbers:
            return
        self.client.post("/api/verify-order", json={"orderNumber": random.choice(self.order_numbers)},
                         name="/api/verify-order")

    @task(1)
    def list_orders(self):
        if self.logged_in:
            self.client.get("/api/orders")
