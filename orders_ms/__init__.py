"""Orders microservice: order commands over NATS backed by a relational store."""
