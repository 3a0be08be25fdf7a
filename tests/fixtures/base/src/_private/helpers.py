def main():
    print("private modules are never commands")
