"""Attendance CRUD package"""
