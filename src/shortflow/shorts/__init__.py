"""Short workflow - repository, request schemas and workflow service"""
