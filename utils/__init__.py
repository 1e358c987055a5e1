# Utils package - logging and configuration helpers
